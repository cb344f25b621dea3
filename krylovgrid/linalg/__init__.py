#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
__all__ = ['basic', 'boundary', 'laplacian', 'ndarray', 'preconditioners',
           'solvers', 'stencil', 'vector_ops']

from krylovgrid.linalg import basic
from krylovgrid.linalg import vector_ops
from krylovgrid.linalg import stencil
from krylovgrid.linalg import ndarray
from krylovgrid.linalg import boundary
from krylovgrid.linalg import laplacian
from krylovgrid.linalg import preconditioners
from krylovgrid.linalg import solvers
