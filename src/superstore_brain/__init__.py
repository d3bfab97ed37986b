"""Pareto and descriptive sales reporting over the Global Superstore dataset."""
