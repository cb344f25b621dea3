# -*- coding: UTF-8 -*-
__all__     = ['__version__', 'api', 'ddm', 'geometry', 'linalg']

from krylovgrid.version import __version__

from krylovgrid import ddm
from krylovgrid import geometry
from krylovgrid import linalg
from krylovgrid import api
