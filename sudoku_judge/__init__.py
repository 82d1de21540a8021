"""Sudoku judge: compiles submitted solvers into a harness, runs them and ranks users."""
