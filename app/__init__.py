"""HTTP boundary of DinDin."""
