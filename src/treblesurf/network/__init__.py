"""HTTP access to the TrebleSurf backend."""
