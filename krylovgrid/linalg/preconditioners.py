#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
"""
This module provides preconditioners for the LaplacianOperator.

A preconditioner is a LinearOperator M approximating the inverse of A; it
never fails and always returns its best estimate. All the preconditioners
here are linear (fixed number of sweeps from a zero initial guess), as
required by right-preconditioned GMRES.

"""
import logging

import numpy as np

from krylovgrid.linalg.basic     import LinearOperator, IdentityOperator, ShapeMismatch, check_conformant
from krylovgrid.linalg.stencil   import StencilVector
from krylovgrid.linalg.laplacian import LaplacianOperator
from krylovgrid.linalg.boundary  import Dirichlet, Periodic
from krylovgrid.linalg.kernels.laplacian_kernels import stencil_apply, stencil_diagonal, periodic_wrap
from krylovgrid.linalg.kernels.multigrid_kernels import restrict_average, prolongate_add

__all__ = (
    'make_preconditioner',
    'IdentityPreconditioner',
    'JacobiPreconditioner',
    'MultigridPreconditioner'
)

logger = logging.getLogger(__name__)

#===============================================================================
def make_preconditioner(A, pc, **kwargs):
    """
    Create a preconditioner for the operator A.

    Parameters
    ----------
    A : krylovgrid.linalg.laplacian.LaplacianOperator
        Operator to be preconditioned.

    pc : str | LinearOperator | None
        Either 'identity' (or None), 'jacobi', 'mg', or a LinearOperator,
        which is returned unchanged. Capitalization is not required.

    **kwargs
        Options of the chosen preconditioner.

    Returns
    -------
    LinearOperator
        The preconditioner.

    """
    if isinstance(pc, LinearOperator):
        if kwargs:
            raise ValueError('Options cannot be passed together with a preconditioner object')
        return pc

    pc_dict = {
        'identity' : lambda A, **kw: IdentityPreconditioner(A.domain, **kw),
        'jacobi'   : JacobiPreconditioner,
        'mg'       : MultigridPreconditioner,
    }

    name = 'identity' if pc is None else str(pc).lower()
    if name not in pc_dict:
        raise ValueError(f"Required preconditioner '{pc}' not understood.")

    return pc_dict[name](A, **kwargs)

#===============================================================================
class IdentityPreconditioner(IdentityOperator):
    """ No preconditioning: the correction is a copy of the residual. """

    def __init__(self, space):
        super().__init__(space)

#===============================================================================
class JacobiPreconditioner(LinearOperator):
    """
    Diagonal (Jacobi) preconditioner: correction = residual / diag(A).

    Parameters
    ----------
    A : krylovgrid.linalg.laplacian.LaplacianOperator
        Operator whose diagonal is used.

    """
    def __init__(self, A):

        if not isinstance(A, LaplacianOperator):
            raise TypeError(f'Expected a LaplacianOperator, got {type(A)}')

        diag = A.diagonal()
        if np.any(diag.interior == 0):
            raise ValueError('Jacobi preconditioner requires a diagonal without zero entries')

        self._A        = A
        self._space    = A.domain
        self._inv_diag = 1 / diag.interior

    @property
    def domain(self):
        return self._space

    @property
    def codomain(self):
        return self._space

    @property
    def dtype(self):
        return self._space.dtype

    def toarray(self):
        return self.tosparse().toarray()

    def tosparse(self):
        from scipy.sparse import diags
        if self._space.parallel:
            raise NotImplementedError('tosparse() requires a serial StencilVectorSpace')
        return diags(self._inv_diag.ravel(), format='csr')

    def dot(self, v, out=None):
        assert isinstance(v, StencilVector)
        if not self._space.is_conformant(v.space):
            raise ShapeMismatch(f'Vector does not belong to {self._space}')

        if out is None:
            out = self._space.zeros()
        else:
            assert isinstance(out, StencilVector)
            check_conformant(v, out)

        idx = self._space.interior_index
        out._data[idx] = v._data[idx] * self._inv_diag
        out.ghost_regions_in_sync = False

        return out

#===============================================================================
class _GridLevel:
    """
    One level of the local multigrid hierarchy: the owned block of a
    process, with one ghost layer, and the boundary treatment of each face.

    Parameters
    ----------
    shape : tuple of int
        Number of local cells along each direction.

    inv_h2 : tuple of float
        Inverse of the squared cell size along each direction.

    faces : list of (BoundaryCondition, BoundaryCondition)
        Condition on the lower and upper face along each direction, where a
        Periodic entry means a local periodic wrap.

    alpha, beta : float
        Coefficients of the operator.

    dtype : numpy.dtype
        Type of the local arrays.

    """
    def __init__(self, shape, inv_h2, faces, alpha, beta, dtype):

        self.shape  = tuple(shape)
        self.inv_h2 = tuple(inv_h2)
        self.h      = tuple(c**-0.5 for c in inv_h2)
        self.faces  = faces
        self.alpha  = alpha
        self.beta   = beta
        self.pads   = (1,) * len(shape)
        self.index  = tuple(slice(1, n+1) for n in shape)

        self.u = np.zeros([n+2 for n in shape], dtype=dtype)
        self.f = np.zeros([n+2 for n in shape], dtype=dtype)
        self.r = np.zeros([n+2 for n in shape], dtype=dtype)

        coeffs = []
        for n, (bc_lo, bc_hi) in zip(shape, faces):
            c = np.full(n, 2.0)
            if isinstance(bc_lo, Periodic):
                if n == 1:
                    c[:] = 0.0
            else:
                c[0]  -= bc_lo.reflection
                c[-1] -= bc_hi.reflection
            coeffs.append(c)

        diag = np.zeros_like(self.u)
        stencil_diagonal(diag, self.index, self.inv_h2, alpha, beta, coeffs)
        # Zero diagonal only on a singular level; the smoother leaves those cells
        d = diag[self.index]
        self.inv_diag = np.divide(1.0, d, out=np.zeros_like(d, dtype=float), where=(d != 0))

    def coarsen(self):
        """ Next coarser level (half the cells, twice the cell size). """
        shape  = [n // 2 for n in self.shape]
        inv_h2 = [c / 4 for c in self.inv_h2]
        return _GridLevel(shape, inv_h2, self.faces, self.alpha, self.beta, self.u.dtype)

    def can_coarsen(self):
        # A periodic wrap needs two cells on the coarse level
        return all(n % 2 == 0 and n // 2 >= (2 if isinstance(bc_lo, Periodic) else 1)
                   for n, (bc_lo, _) in zip(self.shape, self.faces))

    def fill_ghosts(self, data):
        for axis, (bc_lo, bc_hi) in enumerate(self.faces):
            if isinstance(bc_lo, Periodic):
                periodic_wrap(data, axis, 1)
            else:
                bc_lo.fill_ghosts(data, axis, -1, self.pads, self.index, self.h[axis])
                bc_hi.fill_ghosts(data, axis, +1, self.pads, self.index, self.h[axis])

    def residual(self):
        """ r = f - A u on the owned cells. """
        self.fill_ghosts(self.u)
        stencil_apply(self.u, self.r, self.index, self.inv_h2, self.alpha, self.beta)
        idx = self.index
        self.r[idx] = self.f[idx] - self.r[idx]

    def smooth(self, nsweeps, omega):
        """ Weighted Jacobi sweeps on A u = f. """
        idx = self.index
        for _ in range(nsweeps):
            self.residual()
            self.u[idx] += omega * self.r[idx] * self.inv_diag

#===============================================================================
class MultigridPreconditioner(LinearOperator):
    """
    Geometric multigrid V-cycle on the block owned by each process.

    Across processes this is a block-Jacobi method: each process runs a
    V-cycle on its own block, with homogeneous Dirichlet conditions at the
    cuts between blocks and the boundary conditions of the operator at the
    faces of the global domain. Periodic directions which are not split
    among processes keep their periodic wrap.

    The cell-centered hierarchy is built by halving the number of cells as
    long as every local extent is even and at least 2. Restriction averages
    the children of a coarse cell, prolongation is piecewise constant, the
    smoother is weighted Jacobi with omega = 2*ndim/(2*ndim+1), and the
    coarsest level is solved approximately by a fixed number of smoother
    sweeps.

    Parameters
    ----------
    A : krylovgrid.linalg.laplacian.LaplacianOperator
        Operator to be preconditioned.

    nu1 : int
        Number of pre-smoothing sweeps (default: 2).

    nu2 : int
        Number of post-smoothing sweeps (default: 2).

    max_levels : int | None
        Maximum number of levels, the finest included (default: no limit).

    coarse_sweeps : int
        Number of smoother sweeps on the coarsest level (default: 50).

    """
    def __init__(self, A, *, nu1=2, nu2=2, max_levels=None, coarse_sweeps=50):

        if not isinstance(A, LaplacianOperator):
            raise TypeError(f'Expected a LaplacianOperator, got {type(A)}')
        if nu1 < 0 or nu2 < 0 or coarse_sweeps < 1:
            raise ValueError('Number of smoothing sweeps must be non-negative (coarse_sweeps positive)')
        if max_levels is not None and max_levels < 1:
            raise ValueError(f'max_levels must be at least 1, got {max_levels}')

        V = A.domain

        self._A             = A
        self._space         = V
        self._nu1           = int(nu1)
        self._nu2           = int(nu2)
        self._coarse_sweeps = int(coarse_sweeps)
        self._omega         = 2 * V.ndim / (2 * V.ndim + 1)

        # Boundary treatment of the local block
        faces = []
        for axis, (bc_lo, bc_hi) in enumerate(A.bcs):
            split = V.parallel and V.cart.nprocs[axis] > 1
            if isinstance(bc_lo, Periodic) and not split:
                faces.append((bc_lo, bc_hi))
                continue
            lo = bc_lo if (V.starts[axis] == 0 and not isinstance(bc_lo, Periodic)) else Dirichlet()
            hi = bc_hi if (V.ends[axis] == V.npts[axis]-1 and not isinstance(bc_hi, Periodic)) else Dirichlet()
            faces.append((lo, hi))

        # Hierarchy of levels
        finest  = _GridLevel(V.local_npts, A.inv_h2, faces, A.alpha, A.beta, V.dtype)
        levels  = [finest]
        while levels[-1].can_coarsen() and (max_levels is None or len(levels) < max_levels):
            levels.append(levels[-1].coarsen())

        self._levels = levels

        logger.debug('Multigrid hierarchy with %d levels, coarsest block %s',
                     len(levels), levels[-1].shape)

    #--------------------------------------
    # Abstract interface
    #--------------------------------------
    @property
    def domain(self):
        return self._space

    @property
    def codomain(self):
        return self._space

    @property
    def dtype(self):
        return self._space.dtype

    def toarray(self):
        raise NotImplementedError('toarray() is not defined for MultigridPreconditioner.')

    def tosparse(self):
        raise NotImplementedError('tosparse() is not defined for MultigridPreconditioner.')

    def dot(self, v, out=None):
        """ One V-cycle on A e = v from a zero initial guess. """
        assert isinstance(v, StencilVector)
        if not self._space.is_conformant(v.space):
            raise ShapeMismatch(f'Vector does not belong to {self._space}')

        if out is None:
            out = self._space.zeros()
        else:
            assert isinstance(out, StencilVector)
            check_conformant(v, out)

        finest = self._levels[0]
        finest.f[finest.index] = v.interior

        self._vcycle(0)

        idx = self._space.interior_index
        out._data[idx] = finest.u[finest.index]
        out.ghost_regions_in_sync = False

        return out

    #--------------------------------------
    # Other properties/methods
    #--------------------------------------
    @property
    def nlevels(self):
        return len(self._levels)

    @property
    def level_shapes(self):
        """ Number of local cells on each level, finest first. """
        return [level.shape for level in self._levels]

    def _vcycle(self, k):

        level = self._levels[k]
        level.u[...] = 0

        if k == len(self._levels) - 1:
            level.smooth(self._coarse_sweeps, self._omega)
            return

        coarse = self._levels[k+1]

        level.smooth(self._nu1, self._omega)
        level.residual()
        restrict_average(level.r[level.index], coarse.f[coarse.index])

        self._vcycle(k+1)

        prolongate_add(coarse.u[coarse.index], level.u[level.index])
        level.smooth(self._nu2, self._omega)
