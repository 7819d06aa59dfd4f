"""
Data structures consumed by the tree and forest trainers.
"""
from data_structures.example_set import ExampleSet

__all__ = ["ExampleSet"]
