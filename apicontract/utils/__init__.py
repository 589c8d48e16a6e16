"""
Utility modules for apicontract.
"""
from .normalize import (
    CoercionError,
    to_bool,
    to_float,
    to_int,
    to_list,
    to_number,
)
