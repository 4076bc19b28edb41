"""
Driver adapters package.

This package provides the following components:

- column_info: Row-set metadata classes built from cursor.description
- type_mapping: Driver type code resolution to relational type codes

Adapters only identify types. Turning cell values into columnar values is
done by the codecs, never here.
"""

from dbarrow.adapters.column_info import *
from dbarrow.adapters.type_mapping import *
