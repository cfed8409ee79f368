"""EventFlow - team calendar layout and staff assignment backend"""
