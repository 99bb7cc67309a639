"""Source set and module parameter construction and serialization."""

from .builder import ModuleParametersBuilder, SourceSetSpecBuilder
from .conventions import ConventionProvider, LayoutConventions, StaticConventions
from .serialization import (
    FORMAT_VERSION,
    dump_global_configuration,
    dump_module_parameters,
    load_module_parameters,
    read_module_parameters,
    write_module_parameters,
)

__all__ = [
    "ConventionProvider",
    "FORMAT_VERSION",
    "LayoutConventions",
    "ModuleParametersBuilder",
    "SourceSetSpecBuilder",
    "StaticConventions",
    "dump_global_configuration",
    "dump_module_parameters",
    "load_module_parameters",
    "read_module_parameters",
    "write_module_parameters",
]
