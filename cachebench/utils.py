"""
Utility functions shared by the reporting and CLI layers.

Classes:
    CBJsonEncoder: JSON encoder for harness types (enums, sets, numpy scalars).

Functions:
    flatten_nested_dict: Convert a nested dictionary to flat dotted keys.
"""

import enum
import json

from typing import Any

import numpy as np


class CBJsonEncoder(json.JSONEncoder):
    """Custom JSON encoder for harness types.

    Handles serialization of types the standard JSON encoder cannot process:
    - Sets are converted to sorted lists
    - Enums are converted to their values
    - numpy scalars and arrays are converted to Python numbers and lists
    - Objects with as_dict() or __dict__ are serialized as dictionaries

    Example:
        >>> import json
        >>> data = {'distribution': Distribution.GAUSSIAN, 'formats': {'csv', 'json'}}
        >>> json.dumps(data, cls=CBJsonEncoder)
        '{"distribution": "gaussian", "formats": ["csv", "json"]}'
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        elif isinstance(obj, enum.Enum):
            return obj.value
        elif isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif hasattr(obj, 'as_dict'):
            return obj.as_dict()
        elif hasattr(obj, '__dict__'):
            return obj.__dict__
        return super().default(obj)


def flatten_nested_dict(nested_dict, parent_key='', separator='.'):
    """
    Flatten a nested dictionary into a single-level dictionary with keys
    joined by a separator.

    Example:
        Input: {'a': 1, 'b': {'c': 2, 'd': {'e': 3}}}
        Output: {'a': 1, 'b.c': 2, 'b.d.e': 3}
    """
    flat_dict = {}

    for key, value in nested_dict.items():
        new_key = f"{parent_key}{separator}{key}" if parent_key else key

        if isinstance(value, dict):
            flat_dict.update(flatten_nested_dict(value, new_key, separator))
        else:
            flat_dict[new_key] = value

    return flat_dict

