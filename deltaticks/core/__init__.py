"""Core building blocks of deltaticks."""
