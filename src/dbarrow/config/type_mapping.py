"""
Configuration for column type overrides.

Some drivers report no usable type for a result column (sqlite3 leaves
``cursor.description`` type codes empty), and some report types outside the
relational type table (PostgreSQL ``json``). Overrides name the relational
type to use instead, as a declaration string such as ``'bigint'`` or
``'decimal(12,4)'``.

File format::

    {
        "sqlite": {
            "columns": {"orders.total": "decimal(12,2)", "created": "timestamp"},
            "patterns": {"_id$": "bigint"}
        }
    }
"""
import json
import logging
import pathlib
import re

logger = logging.getLogger(__name__)

DEFAULT_LOCATIONS = (
    '~/.config/dbarrow/type_mapping.json',
    '/etc/dbarrow/type_mapping.json',
    'type_mapping.json',
    )


class TypeMappingConfig:
    """Configuration for custom column type overrides"""

    _instance = None

    @classmethod
    def get_instance(cls):
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Drop the singleton so the next access reloads configuration"""
        cls._instance = None

    def __init__(self, config_file=None):
        self._mappings = {}

        if config_file:
            self.load_config(config_file)
            return

        for location in DEFAULT_LOCATIONS:
            path = pathlib.Path(location).expanduser()
            if path.exists():
                self.load_config(path)
                break

    def _section(self, dialect):
        return self._mappings.setdefault(dialect, {'patterns': {}, 'columns': {}})

    def load_config(self, config_file):
        """Load configuration from file

        A file that cannot be read or parsed is logged and ignored so a bad
        user-level file never blocks a conversion that needs no overrides.
        """
        try:
            with pathlib.Path(config_file).open() as f:
                config = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f'Failed to load type mapping config {config_file}: {e}')
            return

        for dialect, mappings in config.items():
            section = self._section(dialect)
            section['patterns'].update(mappings.get('patterns', {}))
            section['columns'].update(
                {k.lower(): v for k, v in mappings.get('columns', {}).items()})

        logger.info(f'Loaded type mapping configuration from {config_file}')

    def get_type_for_column(self, dialect, table_name, column_name):
        """Get configured type declaration for a specific column"""
        if dialect not in self._mappings or not column_name:
            return None

        columns = self._mappings[dialect]['columns']
        name = column_name.lower()

        if table_name:
            key = f'{table_name.lower()}.{name}'
            if key in columns:
                return columns[key]

        if name in columns:
            return columns[name]

        for pattern, declaration in self._mappings[dialect]['patterns'].items():
            if re.search(pattern, name):
                return declaration

        return None

    def add_column_mapping(self, dialect, table_name, column_name, declaration):
        """Add a specific column mapping"""
        key = f'{table_name.lower()}.{column_name.lower()}' if table_name else column_name.lower()
        self._section(dialect)['columns'][key] = declaration

    def add_pattern_mapping(self, dialect, pattern, declaration):
        """Add a regex pattern mapping matched against lowercase column names"""
        self._section(dialect)['patterns'][pattern] = declaration
