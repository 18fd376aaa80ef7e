"""Locate data files shipped next to the code that uses them."""

import os.path
import pathlib
import sys
from importlib.resources import files

from ldapfixture import errors


def findResource(path, package=None):
    """
    Return the absolute file-system path of a resource.

    @param path: Name of the resource, using C{/} as separator.

    @param package: Dotted name of the package holding the resource.
    If None, C{path} is looked up relative to each C{sys.path} entry in
    turn.

    @raise errors.ResourceNotFoundError: The resource does not exist or
    is not a plain file on disk.
    """
    if package is None:
        for entry in sys.path:
            candidate = os.path.join(entry or os.curdir, *path.split('/'))
            if os.path.isfile(candidate):
                return os.path.abspath(candidate)
        raise errors.ResourceNotFoundError(path)

    try:
        resource = files(package).joinpath(path)
    except (ImportError, TypeError) as e:
        raise errors.ResourceNotFoundError(package, path) from e
    if not isinstance(resource, pathlib.Path):
        # e.g. a package imported from a zip archive
        raise errors.ResourceNotFoundError(
            package, path, 'not a file on disk')
    if not resource.is_file():
        raise errors.ResourceNotFoundError(package, path)
    return os.path.abspath(str(resource))
