#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
from pathlib import Path

__all__ = ('extract_version', '__version__')

def extract_version():
    """
    Version of the package: taken from pyproject.toml with a '-dev' suffix
    when running from a source checkout, from the installed metadata otherwise.

    """
    root_dir  = Path(__file__).resolve().parent.parent
    pyproject = root_dir / 'pyproject.toml'

    if pyproject.is_file():
        for line in pyproject.read_text(encoding='utf-8').splitlines():
            key, sep, value = line.partition('=')
            if sep and key.strip() == 'version':
                version = value.strip().strip('\'"')
                return f"{version}-dev (at {root_dir})"

    from importlib.metadata import version
    return version(__package__)


__version__ = extract_version()
