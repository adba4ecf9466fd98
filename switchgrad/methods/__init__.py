"""Runge-Kutta tableaux."""
