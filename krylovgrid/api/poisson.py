#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
"""
Restarted GMRES solver for the Poisson equation on a distributed
cell-centered grid.

"""
import logging

from krylovgrid.api.settings        import (KRYLOVGRID_GMRES_DEFAULTS, KRYLOVGRID_MG_DEFAULTS,
                                            KRYLOVGRID_PRECONDITIONERS)
from krylovgrid.api.discretization  import discretize_space
from krylovgrid.linalg.basic        import ShapeMismatch
from krylovgrid.linalg.stencil      import StencilVector
from krylovgrid.linalg.laplacian    import LaplacianOperator
from krylovgrid.linalg.preconditioners import make_preconditioner
from krylovgrid.linalg.solvers      import inverse
from krylovgrid.linalg.vector_ops   import dot, norm2

__all__ = ('GMRESPoisson',)

logger = logging.getLogger(__name__)

#==============================================================================
class GMRESPoisson:
    """
    Solver for alpha*u - beta*Lap(u) = f with restarted, right-preconditioned
    GMRES, on a cell-centered grid distributed over the processes of a
    communicator.

    Parameters
    ----------
    geometry : krylovgrid.geometry.Geometry
        Cell-centered grid.

    bcs : None | BoundaryCondition | sequence
        Boundary conditions (default: homogeneous Dirichlet on the non-periodic
        directions), see krylovgrid.linalg.boundary.normalize_bcs.

    comm : mpi4py.MPI.Comm | None
        Communicator of the processes sharing the grid.

    pads : int
        Ghost width of the fields (at least 1).

    dtype : type
        Type of the values (float64 or float32).

    alpha, beta : float
        Coefficients of the operator.

    pc : str | LinearOperator | None
        Preconditioner: 'mg' (default), 'jacobi', 'identity', None, or an
        operator approximating the inverse.

    restart : int
        Maximum dimension of the Krylov space before restarting.

    maxiter : int
        Maximum total number of iterations.

    max_restarts : int | None
        Maximum number of restarts.

    **pc_options
        Options of the named preconditioner (e.g. nu1, nu2 for 'mg').

    """
    def __init__(self, geometry, bcs=None, *, comm=None, pads=1, dtype=float, alpha=0.0, beta=1.0,
                 pc='mg', restart=KRYLOVGRID_GMRES_DEFAULTS['restart'],
                 maxiter=KRYLOVGRID_GMRES_DEFAULTS['maxiter'],
                 max_restarts=KRYLOVGRID_GMRES_DEFAULTS['max_restarts'], **pc_options):

        if isinstance(pc, str) and pc.lower() not in KRYLOVGRID_PRECONDITIONERS:
            raise ValueError(f"Preconditioner '{pc}' not understood, expected one of {KRYLOVGRID_PRECONDITIONERS}")

        space = discretize_space(geometry, comm=comm, pads=pads, dtype=dtype)
        A     = LaplacianOperator(space, geometry, bcs, alpha=alpha, beta=beta)

        if isinstance(pc, str) and pc.lower() == 'mg':
            pc_options = {**KRYLOVGRID_MG_DEFAULTS, **pc_options}
        M = make_preconditioner(A, pc, **pc_options)

        self._geometry = geometry
        self._space    = space
        self._A        = A
        self._M        = M
        self._rank     = 0 if space.comm is None else space.comm.Get_rank()
        self._verbose  = KRYLOVGRID_GMRES_DEFAULTS['verbose']

        self._solver = inverse(A, 'gmres', pc=M, restart=restart, maxiter=maxiter,
                               max_restarts=max_restarts)

    #--------------------------------------------------------------------------
    @property
    def geometry(self):
        return self._geometry

    @property
    def space(self):
        return self._space

    @property
    def operator(self):
        return self._A

    @property
    def preconditioner(self):
        return self._M

    def get_gmres(self):
        """ The underlying GMRES solver. """
        return self._solver

    #--------------------------------------------------------------------------
    def solve(self, x, b, tol_rel, tol_abs=KRYLOVGRID_GMRES_DEFAULTS['tol_abs']):
        """
        Solve A x = b, using the content of x as initial guess.

        Parameters
        ----------
        x : StencilVector
            Initial guess, overwritten by the solution.

        b : StencilVector
            Right-hand side (homogeneous boundary conditions, see
            boundary_correction for inhomogeneous data).

        tol_rel : float
            Relative tolerance on the L2-norm of the residual.

        tol_abs : float
            Absolute tolerance on the L2-norm of the residual.

        Returns
        -------
        info : dict
            Keys 'status', 'success', 'niter', 'nrestarts', 'res_norm' and
            'res_norm0'.

        """
        self._check_field(x)
        self._check_field(b)
        if x is b:
            raise ValueError('Solution and right-hand side must be different fields')

        verbose = self._verbose if self._rank == 0 else 0

        self._solver.set_options(x0=x, tol_rel=tol_rel, tol_abs=tol_abs, verbose=verbose)
        try:
            self._solver.solve(b, out=x)
        finally:
            self._solver.set_options(x0=None)

        info = self._solver.get_info()
        logger.debug('GMRES finished: %s', info)

        return info

    def set_verbose(self, level):
        """ Verbosity of the solver (printing on the first process only). """
        if not isinstance(level, int) or level < 0:
            raise ValueError(f'Verbose level must be a non-negative integer, got {level!r}')
        self._verbose = level

    def use_precond(self, flag):
        """ Enable or disable the preconditioner; returns the previous setting. """
        previous = self._solver.get_options()['use_pc']
        self._solver.set_options(use_pc=bool(flag))
        return previous

    #--------------------------------------------------------------------------
    def make_rhs(self):
        """ New zero field for a right-hand side. """
        return self._space.zeros()

    def make_lhs(self):
        """ New zero field for a solution, with ghost regions zeroed and in sync. """
        x = self._space.zeros()
        x.ghost_regions_in_sync = True
        return x

    def apply(self, out, v):
        """ out = A v. """
        self._check_field(out)
        self._check_field(v)
        return self._A.apply(out, v)

    def precond(self, out, v):
        """ out = M v, M being the preconditioner (identity if disabled). """
        self._check_field(out)
        self._check_field(v)
        if self._solver.get_options()['use_pc']:
            return self._M.dot(v, out=out)
        return v.copy(out=out)

    def norm2(self, v):
        self._check_field(v)
        return norm2(v)

    def dot_product(self, a, b):
        self._check_field(a)
        self._check_field(b)
        return dot(a, b)

    def boundary_correction(self, b, out=None):
        """ Right-hand side with the inhomogeneous boundary data folded in. """
        self._check_field(b)
        return self._A.boundary_correction(b, out=out)

    def cell_centers(self):
        """ Coordinates of the centers of the local cells, one 1D array per direction. """
        return self._geometry.cell_centers(self._space.starts, self._space.ends)

    def meshgrid(self):
        """ Coordinates of the centers of the local cells as N-dimensional arrays. """
        return self._geometry.meshgrid(self._space.starts, self._space.ends)

    #--------------------------------------------------------------------------
    def _check_field(self, v):
        if not isinstance(v, StencilVector):
            raise TypeError(f'Expected a StencilVector, got {type(v)}')
        if not self._space.is_conformant(v.space):
            raise ShapeMismatch(f'Field does not belong to {self._space}')
