"""Puts backend/ on sys.path so ``ohsurvey`` imports without an install."""
