"""
gforest

A generic decision-tree / random-forest engine. Trees are grown from randomized
split candidates, can keep growing online one example at a time, and are
persisted as plain text (one line per node, pre-order, right subtree first).

Split tests, leaf values, objective functions and example sets are supplied by
the caller; default implementations live in split_tests.py, leaf_values.py,
objectives.py and data_structures/.
"""
