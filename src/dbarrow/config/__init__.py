from dbarrow.config.type_mapping import TypeMappingConfig

__all__ = ['TypeMappingConfig']
