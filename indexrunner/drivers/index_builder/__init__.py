"""Default indexing engine and the build job adapter around it."""

from indexrunner.drivers.index_builder.catalogue import CATALOGUE_FILE_NAME, CatalogueIndexBuilder
from indexrunner.drivers.index_builder.job import IndexBuildJob, directory_size

__all__ = [
    "CATALOGUE_FILE_NAME",
    "CatalogueIndexBuilder",
    "IndexBuildJob",
    "directory_size",
]
