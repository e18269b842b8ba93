"""FoodShare: donation/request post lifecycle and OTP-based identity verification."""
