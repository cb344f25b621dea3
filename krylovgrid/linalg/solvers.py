#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
"""
This module provides the restarted GMRES solver.

"""
from enum import Enum
from math import sqrt, hypot
import logging

import numpy as np

from krylovgrid.linalg.basic      import (Vector, LinearOperator, InverseLinearOperator,
                                          IdentityOperator, ShapeMismatch)
from krylovgrid.linalg.vector_ops import lin_comb, norm2

__all__ = (
    'inverse',
    'GMRESStatus',
    'GMRES'
)

logger = logging.getLogger(__name__)

#===============================================================================
def inverse(A, solver, **kwargs):
    """
    A function to create objects of all InverseLinearOperator subclasses.

    The kwargs given must be compatible with the chosen solver subclass.

    Parameters
    ----------
    A : krylovgrid.linalg.basic.LinearOperator
        Left-hand-side matrix A of linear system; individual entries A[i,j]
        can't be accessed, but A has 'shape' attribute and provides 'dot(p)'
        function (e.g. a matrix-vector product A*p).

    solver : str
        Preferred iterative solver. The only option is 'GMRES'.
        Capitalization is not required.

    **kwargs
        Solver options. The preconditioner 'pc' can be given as a
        LinearOperator or as a name understood by
        krylovgrid.linalg.preconditioners.make_preconditioner.

    Returns
    -------
    obj : krylovgrid.linalg.basic.InverseLinearOperator
        A linear operator acting as the inverse of A.

    """

    # Map each possible value of the `solver` string with a specific
    # `InverseLinearOperator` subclass in this module:
    solvers_dict = {
        'gmres' : GMRES,
    }

    # Convert input solver string to lower case
    solver = solver.lower()

    # Check solver input
    if solver not in solvers_dict:
        raise ValueError(f"Required solver '{solver}' not understood.")

    assert isinstance(A, LinearOperator)

    if isinstance(A, IdentityOperator):
        return A
    elif isinstance(A, InverseLinearOperator):
        return A.linop

    # Build named preconditioner
    pc = kwargs.get('pc')
    if isinstance(pc, str):
        from krylovgrid.linalg.preconditioners import make_preconditioner
        kwargs['pc'] = make_preconditioner(A, pc)

    # Instantiate object of correct solver class
    cls = solvers_dict[solver]
    obj = cls(A, **kwargs)

    return obj

#===============================================================================
class GMRESStatus(Enum):
    """ Outcome of a GMRES solve. """
    CONVERGED          = 'converged'
    MAX_ITERS_EXCEEDED = 'max_iters_exceeded'
    BREAKDOWN_DETECTED = 'breakdown_detected'

#===============================================================================
class GMRES(InverseLinearOperator):
    """
    Restarted Generalized Minimal Residual (GMRES) with right preconditioning.

    A LinearOperator subclass. Objects of this class are meant to be created using :func:~`solvers.inverse`.
    The .dot (and also the .solve) function are based on the restarted
    generalized minimal residual algorithm for solving linear system Ax=b.
    The Krylov space is built for the operator A*M, where M is the
    preconditioner, and the solution is updated as x += M*(V*y).
    The Arnoldi process uses modified Gram-Schmidt with one
    re-orthogonalization pass when cancellation is detected.

    Parameters
    ----------
    A : krylovgrid.linalg.basic.LinearOperator
        Left-hand-side matrix A of linear system; individual entries A[i,j]
        can't be accessed, but A has 'shape' attribute and provides 'dot(p)'
        function (i.e. matrix-vector product A*p).

    pc : krylovgrid.linalg.basic.LinearOperator, optional
        Preconditioner for A, it should approximate the inverse of A. If None, no preconditioner is used.

    x0 : krylovgrid.linalg.basic.Vector
        First guess of solution for iterative solver (optional, default zero).

    tol_rel : float
        Relative tolerance for L2-norm of residual r = b - A*x.

    tol_abs : float
        Absolute tolerance for L2-norm of residual r = b - A*x.
        The solver stops when ||r|| <= max(tol_abs, tol_rel*||r0||).

    restart : int
        Maximum dimension of the Krylov space before restarting.

    maxiter : int
        Maximum total number of iterations (Arnoldi steps).

    max_restarts : int | None
        Maximum number of restarts (default: limited by maxiter only).

    verbose : int
        0: silent, 1: summary line, 2: L2-norm of residual at each iteration.

    use_pc : bool
        If False the preconditioner is ignored.

    recycle : bool
        Stores a copy of the output in x0 to speed up consecutive calculations of slightly altered linear systems.
        A given x0 vector is overwritten in place, otherwise a new x0 option is created.

    References
    ----------
    [1] Y. Saad and M.H. Schultz, "GMRES: A generalized minimal residual algorithm for solving nonsymmetric linear systems", SIAM J. Sci. Stat. Comput., 7:856–869, 1986.

    [2] L. Giraud, J. Langou and M. Rozloznik, "The loss of orthogonality in the Gram-Schmidt orthogonalization process", Comput. Math. Appl., 50:1069-1075, 2005.

    """
    # Re-orthogonalize when ||w|| drops below this fraction during Gram-Schmidt
    _reorth_eta = 1 / sqrt(2)

    # Breakdown when the new Hessenberg entry is below this fraction of ||w||
    _breakdown_eps = 1e-14

    def __init__(self, A, *, pc=None, x0=None, tol_rel=1e-6, tol_abs=0.0, restart=30, maxiter=2000,
                 max_restarts=None, verbose=0, use_pc=True, recycle=False):

        self._options = {"pc": pc, "x0":x0, "tol_rel":tol_rel, "tol_abs":tol_abs, "restart":restart,
                         "maxiter":maxiter, "max_restarts":max_restarts, "verbose":verbose,
                         "use_pc":use_pc, "recycle":recycle}

        super().__init__(A, **self._options)

        self._tmps = {key: self.domain.zeros() for key in ("r", "w", "z")}

        # Krylov basis, extended on demand
        self._Q = []
        self._info = None

    #...
    def _check_options(self, **kwargs):
        for key, value in kwargs.items():

            if key == 'pc':
                if value is not None:
                    if not isinstance(value, LinearOperator):
                        raise TypeError("Option 'pc' must be a LinearOperator or None")
                    if not value.domain.is_conformant(self._A.codomain):
                        raise ShapeMismatch("Preconditioner is not conformant with the operator")
            elif key == 'x0':
                if value is not None:
                    if not isinstance(value, Vector):
                        raise TypeError("Option 'x0' must be a Vector or None")
                    if not value.space.is_conformant(self._A.domain):
                        raise ShapeMismatch("Initial guess does not belong to the operator domain")
            elif key in ('tol_rel', 'tol_abs'):
                if not np.isscalar(value) or value < 0:
                    raise ValueError(f"Option '{key}' must be a non-negative number, got {value!r}")
            elif key == 'restart':
                if not isinstance(value, (int, np.integer)) or value < 1:
                    raise ValueError(f"Option 'restart' must be a positive integer, got {value!r}")
            elif key == 'maxiter':
                if not isinstance(value, (int, np.integer)) or value < 1:
                    raise ValueError(f"Option 'maxiter' must be a positive integer, got {value!r}")
            elif key == 'max_restarts':
                if value is not None and (not isinstance(value, (int, np.integer)) or value < 0):
                    raise ValueError(f"Option 'max_restarts' must be None or a non-negative integer, got {value!r}")
            elif key == 'verbose':
                if not isinstance(value, (bool, int, np.integer)) or value < 0:
                    raise ValueError(f"Option 'verbose' must be a non-negative integer, got {value!r}")
            elif key in ('use_pc', 'recycle'):
                if not isinstance(value, bool):
                    raise TypeError(f"Option '{key}' must be a bool")
            else:
                raise ValueError(f"Key '{key}' not understood. See self._options for allowed keys.")

    #...
    def solve(self, b, out=None):
        """
        Restarted GMRES algorithm for solving linear system Ax=b.
        Info can be accessed using get_info(), see :func:~`basic.InverseLinearOperator.get_info`.
        The info dictionary contains the keys 'status' (GMRESStatus),
        'success', 'niter', 'nrestarts', 'res_norm' and 'res_norm0'.

        A zero right-hand side (b = 0 exactly) is solved by x = 0 without any
        iteration: the output is set to zero even when a nonzero initial guess
        x0 is given (x0 itself is only modified by the recycle option), and
        the status is CONVERGED with niter = 0 and res_norm = res_norm0 = 0.
        Any nonzero b, however small, is solved normally.

        Parameters
        ----------
        b : krylovgrid.linalg.basic.Vector
            Right-hand-side vector of linear system Ax = b. Individual entries b[i] need
            not be accessed, but b provides 'copy()' and 'inner(p)' functions
            (b.inner(p) is the vector inner product b*p); moreover,
            scalar multiplication and sum operations are available.

        out : krylovgrid.linalg.basic.Vector | NoneType
            The output vector, or None (optional).

        Returns
        -------
        x : krylovgrid.linalg.basic.Vector
            Numerical solution of the linear system. To check the convergence of the solver,
            use the method InverseLinearOperator.get_info().

        """

        A = self._A
        domain = self.domain
        codomain = self.codomain
        options = self._options
        pc = options["pc"] if options["use_pc"] else None
        x0 = options["x0"]
        tol_rel = options["tol_rel"]
        tol_abs = options["tol_abs"]
        restart = options["restart"]
        maxiter = options["maxiter"]
        max_restarts = options["max_restarts"]
        verbose = int(options["verbose"])
        recycle = options["recycle"]

        assert isinstance(b, Vector)
        if not domain.is_conformant(b.space):
            raise ShapeMismatch("Right-hand side does not belong to the solver domain")

        self._info = None

        # First guess of solution
        if out is not None:
            assert isinstance(out, Vector)
            if not codomain.is_conformant(out.space):
                raise ShapeMismatch("Output vector does not belong to the solver codomain")

        if x0 is not None:
            x = x0.copy(out=out)
        else:
            x = codomain.zeros() if out is None else out
            x.set_zero()

        # Extract local storage
        r = self._tmps["r"]
        w = self._tmps["w"]
        z = self._tmps["z"]
        Q = self._Q
        while len(Q) < restart + 1:
            Q.append(domain.zeros())

        # Internal objects of GMRES
        H  = np.zeros((restart + 1, restart))
        g  = np.zeros(restart + 1)
        cn = np.zeros(restart)
        sn = np.zeros(restart)

        b_norm = norm2(b)

        # Zero right-hand side: the exact solution is zero, whatever x0 is
        if b_norm == 0.0:
            x.set_zero()
            self._info = {'status': GMRESStatus.CONVERGED, 'success': True, 'niter': 0,
                          'nrestarts': 0, 'res_norm': 0.0, 'res_norm0': 0.0}
            if verbose >= 1:
                self._print_summary()
            if recycle:
                self._recycle(x, x0)
            return x

        # First values
        A.dot(x, out=w)
        lin_comb(r, 1.0, b, -1.0, w)
        am  = norm2(r)
        am0 = am

        template = "| {:7d} | {:19.2e} |"
        if verbose >= 2:
            print( "GMRES solver:" )
            print( "+---------+---------------------+")
            print( "+ Iter. # | L2-norm of residual |")
            print( "+---------+---------------------+")
            print( template.format( 0, am ) )

        niter     = 0
        nrestarts = 0

        if am <= max(tol_abs, tol_rel * b_norm):
            status = GMRESStatus.CONVERGED
        else:
            status = None

        target = max(tol_abs, tol_rel * am0)

        # Iterate to convergence
        while status is None:

            # Start Arnoldi cycle from current residual
            H[:, :] = 0.
            g[:]    = 0.
            g[0]    = am
            r.copy(out=Q[0])
            Q[0] *= 1 / am

            k = 0
            converged = False
            breakdown = False

            for j in range(restart):
                if niter >= maxiter:
                    break

                breakdown = self.arnoldi(j, H, pc, w, z)
                niter += 1

                degenerate = self.apply_givens_rotation(j, H, cn, sn)
                k = j if degenerate else j + 1
                breakdown = breakdown or degenerate

                # update the residual estimate
                g[j+1] = - sn[j] * g[j]
                g[j]  *= cn[j]
                am_est = abs(g[j+1])

                if verbose >= 2:
                    print( template.format( niter, am_est ) )

                if am_est <= target and not degenerate:
                    converged = True
                    break

                if breakdown:
                    break

            # calculate result: x += M (V y)
            if k > 0:
                y = self.solve_triangular(H[:k, :k], g[:k]) # system of upper triangular matrix
                w.set_zero()
                for i in range(k):
                    w.mul_iadd(float(y[i]), Q[i])
                if pc is not None:
                    pc.dot(w, out=z)
                    x += z
                else:
                    x += w

            if converged:
                am = am_est
                status = GMRESStatus.CONVERGED
                break

            # True residual
            A.dot(x, out=w)
            lin_comb(r, 1.0, b, -1.0, w)
            am = norm2(r)

            if am <= target:
                status = GMRESStatus.CONVERGED
            elif breakdown:
                status = GMRESStatus.BREAKDOWN_DETECTED
                logger.warning('GMRES breakdown after %d iterations, residual %.3e', niter, am)
            elif niter >= maxiter or (max_restarts is not None and nrestarts >= max_restarts):
                status = GMRESStatus.MAX_ITERS_EXCEEDED
                logger.warning('GMRES did not converge in %d iterations (%d restarts), residual %.3e',
                               niter, nrestarts, am)
            else:
                nrestarts += 1
                logger.debug('GMRES restart %d after %d iterations, residual %.3e', nrestarts, niter, am)
                if verbose >= 2:
                    print( "| Restart | {:19.2e} |".format( am ) )

        if verbose >= 2:
            print( "+---------+---------------------+")

        # Convergence information
        self._info = {'status': status, 'success': status is GMRESStatus.CONVERGED, 'niter': niter,
                      'nrestarts': nrestarts, 'res_norm': am, 'res_norm0': am0}

        if verbose >= 1:
            self._print_summary()

        if recycle:
            self._recycle(x, x0)

        return x

    #...
    def _recycle(self, x, x0):
        """ Keep the solution x as initial guess of the next solve. """
        if x0 is None:
            self._options["x0"] = x.copy()
        else:
            x.copy(out=x0)

    #...
    def _print_summary(self):
        info = self._info
        print( "GMRES: {} in {} iterations ({} restarts), L2-norm of residual {:.2e}".format(
               info['status'].value, info['niter'], info['nrestarts'], info['res_norm'] ) )

    #...
    @staticmethod
    def solve_triangular(T, d):
        # Backwards substitution. Assumes T is upper triangular
        k = T.shape[0]
        y = np.zeros((k,))

        for k1 in range(k):
            temp = 0.
            for k2 in range(1, k1 + 1):
                temp += T[k - 1 - k1, k - 1 - k1 + k2] * y[k - 1 - k1 + k2]
            y[k - 1 - k1] = ( d[k - 1 - k1] - temp ) / T[k - 1 - k1, k - 1 - k1]

        return y

    #...
    def arnoldi(self, k, H, pc, p, z):
        """
        Extend the Krylov basis with the new vector A*M*q_k, orthogonalized
        with modified Gram-Schmidt. Column k of H receives the coefficients.

        Returns True if the new vector is numerically zero (breakdown).

        """
        Q = self._Q
        h = H[:k+2, k]

        if pc is not None:
            pc.dot(Q[k], out=z)
            self._A.dot(z, out=p) # Krylov vector
        else:
            self._A.dot(Q[k], out=p)

        norm_before = norm2(p)

        for i in range(k + 1): # Modified Gram-Schmidt, keeping Hessenberg matrix
            h[i] = p.inner(Q[i])
            p.mul_iadd(-h[i], Q[i])

        norm_after = norm2(p)

        # Second pass when cancellation occurred
        if norm_after < self._reorth_eta * norm_before:
            for i in range(k + 1):
                c = p.inner(Q[i])
                h[i] += c
                p.mul_iadd(-c, Q[i])
            norm_after = norm2(p)

        h[k+1] = norm_after

        if norm_after <= self._breakdown_eps * norm_before:
            return True

        p.copy(out=Q[k+1])
        Q[k+1] *= 1 / norm_after # Normalize vector

        return False

    #...
    @staticmethod
    def apply_givens_rotation(k, H, cn, sn):
        """
        Apply the previous rotations to column k of H, then compute the
        rotation which zeroes H[k+1, k]. Returns True if it is degenerate.

        """
        # Apply Givens rotation to last column of H
        h = H[:k+2, k]

        for i in range(k):
            h_i_prev = h[i]

            h[i] *= cn[i]
            h[i] += sn[i] * h[i+1]

            h[i+1] *= cn[i]
            h[i+1] -= sn[i] * h_i_prev

        mod = hypot(h[k], h[k+1])
        if mod == 0.:
            cn[k] = 1.
            sn[k] = 0.
            return True

        cn[k] = h[k] / mod
        sn[k] = h[k+1] / mod

        h[k] = mod
        h[k+1] = 0. # becomes triangular

        return False

    #...
    def dot(self, b, out=None):
        return self.solve(b, out=out)
