#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
"""
Cell-centered finite-difference operator alpha*u - beta*Lap(u) on a
distributed structured grid.

"""
import numpy as np
from scipy.sparse import coo_matrix, identity, kron

from krylovgrid.geometry          import Geometry
from krylovgrid.linalg.basic      import LinearOperator, ShapeMismatch, check_conformant
from krylovgrid.linalg.stencil    import StencilVectorSpace, StencilVector
from krylovgrid.linalg.boundary   import Periodic, normalize_bcs, warn_if_singular
from krylovgrid.linalg.kernels.laplacian_kernels import stencil_apply, stencil_diagonal

__all__ = ('LaplacianOperator',)

#===============================================================================
class LaplacianOperator(LinearOperator):
    """
    Discrete operator u -> alpha*u - beta*Lap(u) with the standard
    (2*ndim+1)-point stencil on a cell-centered grid.

    The operator is linear: boundary conditions are applied in homogeneous
    form, and the contribution of inhomogeneous boundary data is moved to
    the right-hand side by boundary_correction().

    Parameters
    ----------
    space : krylovgrid.linalg.stencil.StencilVectorSpace
        Space of the grid functions (domain and codomain), ghost width >= 1.

    geometry : krylovgrid.geometry.Geometry
        Grid geometry, same number of cells and periodicity as the space.

    bcs : None | BoundaryCondition | sequence
        Boundary conditions, see krylovgrid.linalg.boundary.normalize_bcs.

    alpha : float
        Coefficient of the identity term (default: 0).

    beta : float
        Coefficient of the Laplacian term (default: 1).

    """
    def __init__(self, space, geometry, bcs=None, alpha=0.0, beta=1.0):

        if not isinstance(space, StencilVectorSpace):
            raise TypeError(f'Expected a StencilVectorSpace, got {type(space)}')
        if not isinstance(geometry, Geometry):
            raise TypeError(f'Expected a Geometry, got {type(geometry)}')
        if tuple(space.npts) != geometry.ncells:
            raise ValueError(f'Space has {space.npts} points but geometry has {geometry.ncells} cells')
        if tuple(space.periods) != geometry.periodic:
            raise ValueError('Space and geometry have different periodicity')
        if any(p < 1 for p in space.pads):
            raise ValueError(f'Ghost width must be at least 1, got {space.pads}')
        if any(n < p for n, p in zip(space.local_npts, space.pads)):
            raise ValueError(f'Local block {space.local_npts} is smaller than the ghost width {space.pads}')

        self._space    = space
        self._geometry = geometry
        self._bcs      = normalize_bcs(bcs, geometry)
        self._alpha    = float(alpha)
        self._beta     = float(beta)
        self._inv_h2   = tuple(1 / h**2 for h in geometry.spacing)

        warn_if_singular(self._bcs, self._alpha)

        # Faces of the global domain touched by the local block
        starts, ends = space.starts, space.ends
        self._faces  = []
        for axis, (bc_lo, bc_hi) in enumerate(self._bcs):
            if geometry.periodic[axis]:
                continue
            if starts[axis] == 0:
                g = bc_lo.face_values(geometry, axis, -1, starts, ends)
                self._faces.append((axis, -1, bc_lo, g))
            if ends[axis] == space.npts[axis] - 1:
                g = bc_hi.face_values(geometry, axis, +1, starts, ends)
                self._faces.append((axis, +1, bc_hi, g))

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

    def dot(self, v, out=None):
        """
        Apply the operator to v, writing the owned cells of out.

        The ghost regions of v are updated (collective in parallel) and then
        overwritten at the domain boundary by the homogeneous boundary
        conditions.

        """
        assert isinstance(v, StencilVector)
        if not self._space.is_conformant(v.space):
            raise ShapeMismatch(f'Vector does not belong to {self._space}')

        if out is not None:
            assert isinstance(out, StencilVector)
            check_conformant(v, out)
            if out is v:
                raise ValueError('Output vector must be different from input vector')
        else:
            out = self._space.zeros()

        v.update_ghost_regions()
        self._fill_boundary_ghosts(v._data, homogeneous=True)

        stencil_apply(v._data, out._data, self._space.interior_index,
                      self._inv_h2, self._alpha, self._beta)
        out.ghost_regions_in_sync = False

        return out

    def toarray(self):
        return self.tosparse().toarray()

    def tosparse(self):
        """
        Assemble the global matrix in CSR format (rows and columns ordered as
        the C-ordered flattened grid). Only available for a serial space.

        """
        if self._space.parallel:
            raise NotImplementedError('tosparse() requires a serial StencilVectorSpace')

        npts = self._space.npts
        ndim = len(npts)
        A    = self._alpha * identity(self.shape[0], format='csr')

        for d in range(ndim):
            term = self._beta * self._inv_h2[d] * self._second_difference_1d(d)
            for e in range(ndim):
                if e < d:
                    term = kron(identity(npts[e]), term, format='csr')
                elif e > d:
                    term = kron(term, identity(npts[e]), format='csr')
            A = A + term

        return A.tocsr().astype(self.dtype)

    #--------------------------------------
    # Other properties/methods
    #--------------------------------------
    @property
    def space(self):
        return self._space

    @property
    def geometry(self):
        return self._geometry

    @property
    def bcs(self):
        return self._bcs

    @property
    def alpha(self):
        return self._alpha

    @property
    def beta(self):
        return self._beta

    @property
    def inv_h2(self):
        return self._inv_h2

    def diagonal(self):
        """
        Diagonal of the operator (owned cells only).

        Returns
        -------
        diag : StencilVector
            Diagonal entries, boundary conditions included.

        """
        diag   = self._space.zeros()
        coeffs = self.diagonal_coefficients(self._space.starts, self._space.ends)
        stencil_diagonal(diag._data, self._space.interior_index,
                         self._inv_h2, self._alpha, self._beta, coeffs)
        return diag

    def diagonal_coefficients(self, starts, ends):
        """
        Diagonal of the 1D second-difference matrix along each direction,
        restricted to the global index range [starts, ends].

        """
        coeffs = []
        for axis, ((bc_lo, bc_hi), n) in enumerate(zip(self._bcs, self._space.npts)):
            s, e = starts[axis], ends[axis]
            c    = np.full(e - s + 1, 2.0)
            if isinstance(bc_lo, Periodic):
                # A single periodic cell is its own neighbor on both sides
                if n == 1:
                    c[:] = 0.0
            else:
                if s == 0:
                    c[0]  -= bc_lo.reflection
                if e == n - 1:
                    c[-1] -= bc_hi.reflection
            coeffs.append(c)
        return coeffs

    def boundary_correction(self, b, out=None):
        """
        Fold the inhomogeneous boundary data into a right-hand side.

        Computes out = b - A_bc(0), where A_bc is the affine operator with
        the prescribed boundary values; solving A x = out with the linear
        operator gives the solution satisfying the boundary conditions.

        """
        assert isinstance(b, StencilVector)
        if not self._space.is_conformant(b.space):
            raise ShapeMismatch(f'Vector does not belong to {self._space}')

        w   = self._space.zeros()
        tmp = self._space.zeros()
        self._fill_boundary_ghosts(w._data, homogeneous=False)
        stencil_apply(w._data, tmp._data, self._space.interior_index,
                      self._inv_h2, self._alpha, self._beta)

        out = b.copy(out=out)
        out -= tmp
        return out

    #--------------------------------------
    # Private methods
    #--------------------------------------
    def _fill_boundary_ghosts(self, data, homogeneous):
        pads  = self._space.pads
        index = self._space.interior_index
        h     = self._geometry.spacing
        for axis, side, bc, g in self._faces:
            bc.fill_ghosts(data, axis, side, pads, index, h[axis], 0.0 if homogeneous else g)

    def _second_difference_1d(self, axis):
        n        = self._space.npts[axis]
        periodic = self._geometry.periodic[axis]
        diag     = self.diagonal_coefficients([0]*self._space.ndim,
                                              [m-1 for m in self._space.npts])[axis]

        rows = list(range(n))
        cols = list(range(n))
        vals = list(diag)

        rows += list(range(n-1)) + list(range(1, n))
        cols += list(range(1, n)) + list(range(n-1))
        vals += [-1.0] * (2*(n-1))

        if periodic and n > 1:
            rows += [0, n-1]
            cols += [n-1, 0]
            vals += [-1.0, -1.0]

        return coo_matrix((vals, (rows, cols)), shape=(n, n)).tocsr()
