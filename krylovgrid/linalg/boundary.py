#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
"""
Boundary conditions of the cell-centered Laplacian.

A boundary condition fills the ghost cells beyond a face of the global
domain from the values of the cells inside. The ghost layer j (j = 1 is the
layer touching the face) is computed from its mirror image, i.e. the
interior layer j counted from the face:

- Dirichlet : ghost_j = 2*g - u_j      (u = g on the face)
- Neumann   : ghost_j = u_j + (2j-1)*h*g  (outward normal derivative = g)
- Periodic  : ghost cells are filled by the periodic wrap of the field

The coefficient 'reflection' is the weight of the first mirror cell in the
homogeneous ghost value; it determines the diagonal of the operator.

"""
from abc import ABC, abstractmethod
from numbers import Real
import warnings

import numpy as np

__all__ = ('BoundaryCondition', 'Dirichlet', 'Neumann', 'Periodic',
           'normalize_bcs', 'is_singular', 'warn_if_singular')

#===============================================================================
class BoundaryCondition(ABC):
    """
    Boundary condition on one side of the domain along one axis.

    Parameters
    ----------
    value : float | callable
        Boundary data g. A callable is evaluated at the face centers and
        receives one coordinate array per direction.

    """
    def __init__(self, value=0.0):
        if not (callable(value) or isinstance(value, Real)):
            raise TypeError(f'Boundary value must be a scalar or a callable, got {type(value)}')
        self._value = value

    @property
    def value(self):
        return self._value

    @property
    def is_homogeneous(self):
        return (not callable(self._value)) and self._value == 0

    @property
    @abstractmethod
    def reflection(self):
        """ Weight of the first interior cell in the homogeneous ghost value. """

    @abstractmethod
    def _ghost_values(self, mirror, layer, h, g):
        pass

    #---------------------------------------------------------------------------
    def face_values(self, geometry, axis, side, starts, ends):
        """
        Boundary data at the centers of the faces of the local cells
        adjacent to the boundary.

        Returns
        -------
        float | numpy.ndarray
            Scalar, or array with the local shape of the block except for a
            unit extent along 'axis'.

        """
        if not callable(self._value):
            return float(self._value)

        lo, hi = geometry.bounds[axis]
        x      = geometry.cell_centers(starts, ends)
        x[axis] = np.array([lo if side < 0 else hi])
        grids  = np.meshgrid(*x, indexing='ij')

        return np.broadcast_to(self._value(*grids), grids[0].shape)

    #---------------------------------------------------------------------------
    def fill_ghosts(self, data, axis, side, pads, index, h, g=0.0):
        """
        Fill the ghost layers of a local array beyond one face.

        Parameters
        ----------
        data : numpy.ndarray
            Local array with ghost regions of width pads[d] along direction d.

        axis : int
            Direction normal to the face.

        side : int
            -1 for the lower face, +1 for the upper face.

        pads : tuple of int
            Ghost width along each direction.

        index : tuple of slice
            Slices selecting the owned values of the local array.

        h : float
            Cell size along 'axis'.

        g : float | numpy.ndarray
            Boundary data, 0 for the homogeneous condition.

        """
        p = pads[axis]
        n = index[axis].stop - index[axis].start
        assert p <= n

        for j in range(1, p+1):
            if side < 0:
                ghost, mirror = p-j, p+j-1
            else:
                ghost, mirror = p+n-1+j, p+n-j

            idx_ghost  = index[:axis] + (slice(ghost , ghost +1),) + index[axis+1:]
            idx_mirror = index[:axis] + (slice(mirror, mirror+1),) + index[axis+1:]

            data[idx_ghost] = self._ghost_values(data[idx_mirror], j, h, g)

    def __repr__(self):
        return f'{type(self).__name__}({self._value!r})'

#===============================================================================
class Dirichlet(BoundaryCondition):
    """ Prescribed value u = g on the face. """

    @property
    def reflection(self):
        return -1

    def _ghost_values(self, mirror, layer, h, g):
        return 2*g - mirror

#===============================================================================
class Neumann(BoundaryCondition):
    """ Prescribed outward normal derivative du/dn = g on the face. """

    @property
    def reflection(self):
        return 1

    def _ghost_values(self, mirror, layer, h, g):
        return mirror + (2*layer-1) * h * g

#===============================================================================
class Periodic(BoundaryCondition):
    """ Periodic wrap; only valid along a periodic direction. """

    def __init__(self):
        super().__init__(0.0)

    @property
    def reflection(self):
        return 0

    def _ghost_values(self, mirror, layer, h, g):
        raise NotImplementedError('Periodic ghost cells come from the periodic wrap of the field')

    def fill_ghosts(self, data, axis, side, pads, index, h, g=0.0):
        pass

    def __repr__(self):
        return 'Periodic()'

#===============================================================================
def normalize_bcs(bcs, geometry):
    """
    Build the boundary condition on each side of each direction.

    Parameters
    ----------
    bcs : None | BoundaryCondition | sequence
        None gives homogeneous Dirichlet conditions on non-periodic
        directions. A single BoundaryCondition applies to every side of the
        non-periodic directions. Otherwise one entry per direction, either a
        BoundaryCondition (both sides) or a pair (lower, upper).

    geometry : krylovgrid.geometry.Geometry
        Grid geometry, defines the number of directions and periodicity.

    Returns
    -------
    tuple of (BoundaryCondition, BoundaryCondition)
        Lower and upper boundary condition along each direction.

    """
    ndim = geometry.ndim

    if bcs is None or isinstance(bcs, BoundaryCondition):
        default = Dirichlet() if bcs is None else bcs
        bcs = [Periodic() if P else default for P in geometry.periodic]

    if len(bcs) != ndim:
        raise ValueError(f'Expected boundary conditions for {ndim} directions, got {len(bcs)}')

    pairs = []
    for axis, (bc, P) in enumerate(zip(bcs, geometry.periodic)):
        if isinstance(bc, BoundaryCondition):
            bc = (bc, bc)
        if len(bc) != 2 or not all(isinstance(b, BoundaryCondition) for b in bc):
            raise TypeError(f'Invalid boundary conditions along direction {axis}: {bc!r}')

        periodic_bc = [isinstance(b, Periodic) for b in bc]
        if P and not all(periodic_bc):
            raise ValueError(f'Direction {axis} is periodic, boundary conditions must be Periodic')
        if not P and any(periodic_bc):
            raise ValueError(f'Periodic boundary condition along non-periodic direction {axis}')

        pairs.append(tuple(bc))

    return tuple(pairs)

#===============================================================================
def is_singular(bcs, alpha):
    """
    True if the operator alpha*u - Lap(u) has a null space (constants),
    which happens without Dirichlet condition and with alpha = 0.

    """
    return alpha == 0 and not any(isinstance(b, Dirichlet) for pair in bcs for b in pair)

def warn_if_singular(bcs, alpha):
    if is_singular(bcs, alpha):
        warnings.warn('Operator without Dirichlet boundary condition and alpha = 0 is singular: '
                      'the right-hand side must have zero mean', RuntimeWarning, stacklevel=3)
