import logging

import numpy as np
import pytest
from scipy.sparse.linalg import spsolve

from krylovgrid.geometry          import Geometry
from krylovgrid.linalg.basic      import ShapeMismatch, IdentityOperator
from krylovgrid.linalg.ndarray    import NdarrayVectorSpace, NdarrayVector, NdarrayLinearOperator
from krylovgrid.linalg.stencil    import StencilVectorSpace
from krylovgrid.linalg.boundary   import Dirichlet, Neumann, Periodic
from krylovgrid.linalg.laplacian  import LaplacianOperator
from krylovgrid.linalg.solvers    import inverse, GMRES, GMRESStatus
from krylovgrid.linalg.preconditioners import JacobiPreconditioner, MultigridPreconditioner

#===============================================================================
def define_data(n, seed=0):
    """ Dense non-symmetric, diagonally dominant matrix. """
    rng = np.random.default_rng(seed)
    A   = rng.random((n, n)) + n * np.eye(n)
    b   = rng.random(n)
    return A, b

def make_operator(ncells, periodic=None, bcs=None, alpha=0.0, dtype=float):
    ndim     = len(ncells)
    periodic = periodic or [False]*ndim
    geometry = Geometry([(0., 1.)]*ndim, ncells, periodic)
    V        = StencilVectorSpace(ncells, [1]*ndim, periodic, dtype=dtype)
    return LaplacianOperator(V, geometry, bcs, alpha=alpha)

def random_field(V, seed=0):
    x = V.zeros()
    x.interior[:] = np.random.default_rng(seed).random(x.interior.shape)
    return x

#===============================================================================
# SERIAL TESTS
#===============================================================================
@pytest.mark.parametrize('n', [5, 13, 40])
@pytest.mark.parametrize('restart', [3, 30])

def test_gmres_dense(n, restart):

    Am, bm = define_data(n)
    xe     = np.linalg.solve(Am, bm)

    V = NdarrayVectorSpace(n)
    A = NdarrayLinearOperator(V, matrix=Am)
    b = NdarrayVector(V, bm)

    solver = inverse(A, 'GMRES', tol_rel=1e-12, restart=restart, maxiter=10*n)
    x      = solver.dot(b)
    info   = solver.get_info()

    assert info['status'] is GMRESStatus.CONVERGED
    assert info['success']
    assert info['res_norm'] <= 1e-12 * info['res_norm0']
    assert np.allclose(x.data, xe, rtol=1e-9, atol=1e-9)

    # Without restarts the Krylov space reaches the full dimension at most
    if restart >= n:
        assert info['niter'] <= n
        assert info['nrestarts'] == 0

#===============================================================================
def test_gmres_parabola_1d():

    # -u'' = 1 on (0,1), u(0) = u(1) = 0: u = x(1-x)/2
    n = 8
    h = 1 / n
    A = make_operator([n])
    b = A.domain.zeros()
    b.interior[:] = 1.0

    solver = inverse(A, 'gmres', tol_rel=1e-10, restart=30)
    x      = solver.solve(b)
    info   = solver.get_info()

    xc, = A.geometry.cell_centers()
    ue  = xc * (1 - xc) / 2

    assert info['success']
    assert info['niter'] <= n
    assert np.max(abs(x.toarray() - ue)) < h**2

    # Boundary closure shifts the discrete solution by h^2/8
    assert np.allclose(x.toarray(), ue + h**2/8, rtol=1e-8, atol=1e-8)

#===============================================================================
@pytest.mark.parametrize('pc', [None, 'jacobi', 'mg'])

def test_gmres_manufactured_2d(pc):

    # u = sin(pi x) sin(pi y), homogeneous Dirichlet
    n = 32
    A = make_operator([n, n])
    b = A.domain.zeros()

    xx, yy = A.geometry.meshgrid()
    ue     = np.sin(np.pi * xx) * np.sin(np.pi * yy)
    b.interior[:] = 2 * np.pi**2 * ue

    solver = inverse(A, 'gmres', pc=pc, tol_rel=1e-10, restart=40, maxiter=5000)
    x      = A.domain.zeros()
    y      = solver.solve(b, out=x)

    assert y is x
    assert solver.get_info()['success']
    assert np.max(abs(x.toarray() - ue.ravel())) < 1e-2

    # Discrete solution
    xs = spsolve(A.tosparse(), b.toarray())
    assert np.allclose(x.toarray(), xs, rtol=1e-7, atol=1e-7)

#===============================================================================
def test_gmres_zero_rhs():

    A  = make_operator([10, 6])
    b  = A.domain.zeros()
    x0 = random_field(A.domain)

    solver = inverse(A, 'gmres', x0=x0, pc='mg')
    x      = solver.solve(b)
    info   = solver.get_info()

    assert info['status'] is GMRESStatus.CONVERGED
    assert info['niter'] == 0
    assert info['res_norm0'] == 0.0
    assert info['res_norm'] == 0.0
    assert np.all(x.toarray() == 0)

    # The initial guess is left untouched
    assert x is not x0
    assert np.any(x0.toarray() != 0)

#===============================================================================
def test_gmres_tiny_rhs():

    A = make_operator([8, 8], alpha=1.0)
    b = random_field(A.domain, seed=3)
    xs = spsolve(A.tosparse(), b.toarray())

    # Nonzero right-hand side whose squared entries underflow
    b.interior[:] *= 1e-200

    solver = inverse(A, 'gmres', pc='jacobi', tol_rel=1e-10)
    x      = solver.solve(b)
    info   = solver.get_info()

    assert info['status'] is GMRESStatus.CONVERGED
    assert info['niter'] > 0
    assert info['res_norm0'] > 0.0
    assert np.allclose(x.toarray() * 1e200, xs, rtol=1e-7, atol=1e-7)

#===============================================================================
def test_gmres_options_at_construction():

    A  = make_operator([10, 6], alpha=1.0)
    b  = random_field(A.domain)
    x0 = random_field(A.domain, seed=1)
    xs = spsolve(A.tosparse(), b.toarray())

    # Preconditioner and initial guess are checked against the spaces of A
    pc     = JacobiPreconditioner(A)
    solver = GMRES(A, pc=pc, x0=x0, tol_rel=1e-10)
    x      = solver.solve(b)

    assert solver.get_options()['pc'] is pc
    assert solver.get_options()['x0'] is x0
    assert solver.get_info()['success']
    assert np.allclose(x.toarray(), xs, rtol=1e-8, atol=1e-8)

    solver = inverse(A, 'gmres', pc='mg', x0=x0, tol_rel=1e-10)
    x      = solver.dot(b)

    assert isinstance(solver.get_options()['pc'], MultigridPreconditioner)
    assert solver.get_info()['success']
    assert np.allclose(x.toarray(), xs, rtol=1e-8, atol=1e-8)

    solver.set_options(pc=JacobiPreconditioner(A), x0=None)
    assert solver.get_options()['x0'] is None

#===============================================================================
def test_gmres_initial_guess():

    A  = make_operator([12, 12], alpha=1.0)
    b  = random_field(A.domain)
    x0 = A.domain.zeros()
    x0.interior[:] = spsolve(A.tosparse(), b.toarray()).reshape(12, 12)

    solver = inverse(A, 'gmres', x0=x0, tol_rel=1e-8)
    x      = solver.solve(b)
    info   = solver.get_info()

    assert info['success']
    assert info['niter'] == 0
    assert x is not x0
    assert np.array_equal(x.toarray(), x0.toarray())

#===============================================================================
def test_gmres_max_iters(caplog):

    A = make_operator([32, 32])
    b = random_field(A.domain)

    solver = inverse(A, 'gmres', tol_rel=1e-12, restart=30, maxiter=10)

    with caplog.at_level(logging.WARNING, logger='krylovgrid.linalg.solvers'):
        solver.solve(b)

    info = solver.get_info()

    assert info['status'] is GMRESStatus.MAX_ITERS_EXCEEDED
    assert not info['success']
    assert info['niter'] == 10
    assert info['res_norm'] < info['res_norm0']
    assert 'did not converge' in caplog.text

#===============================================================================
def test_gmres_max_restarts():

    A = make_operator([64])
    b = random_field(A.domain)

    solver = inverse(A, 'gmres', tol_rel=1e-12, restart=5, max_restarts=2)
    solver.solve(b)
    info = solver.get_info()

    assert info['status'] is GMRESStatus.MAX_ITERS_EXCEEDED
    assert info['niter'] == 15
    assert info['nrestarts'] == 2

#===============================================================================
def test_gmres_restarts_converge():

    A = make_operator([16, 16], bcs=Neumann(), alpha=100.0)
    b = random_field(A.domain)

    solver = inverse(A, 'gmres', pc='jacobi', tol_rel=1e-8, restart=4, maxiter=5000)
    x      = solver.solve(b)
    info   = solver.get_info()

    r = b - A.dot(x)

    assert info['success']
    assert info['nrestarts'] >= 1
    assert np.linalg.norm(r.toarray()) <= 1e-7 * np.linalg.norm(b.toarray())

#===============================================================================
def test_gmres_breakdown(caplog):

    # Right-hand side outside of the range of a singular matrix
    V = NdarrayVectorSpace(2)
    A = NdarrayLinearOperator(V, matrix=np.diag([1.0, 0.0]))
    b = NdarrayVector(V, np.array([0.0, 1.0]))

    solver = inverse(A, 'gmres')

    with caplog.at_level(logging.WARNING, logger='krylovgrid.linalg.solvers'):
        x = solver.solve(b)

    info = solver.get_info()

    assert info['status'] is GMRESStatus.BREAKDOWN_DETECTED
    assert not info['success']
    assert info['niter'] == 1
    assert np.all(x.data == 0)
    assert 'breakdown' in caplog.text

#===============================================================================
def test_gmres_use_pc():

    A = make_operator([16, 16])
    b = random_field(A.domain)

    solver = inverse(A, 'gmres', pc='mg', tol_rel=1e-8, maxiter=5000)
    solver.solve(b)
    niter_pc = solver.get_info()['niter']

    solver.set_options(use_pc=False)
    x1 = solver.solve(b)
    niter_no_pc = solver.get_info()['niter']

    reference = inverse(A, 'gmres', tol_rel=1e-8, maxiter=5000)
    x2 = reference.solve(b)

    assert niter_no_pc == reference.get_info()['niter']
    assert np.array_equal(x1.toarray(), x2.toarray())
    assert niter_pc < niter_no_pc

#===============================================================================
def test_gmres_recycle():

    A = make_operator([16, 16], alpha=1.0)
    b = random_field(A.domain)

    tol    = 1e-6 * np.linalg.norm(b.toarray())
    solver = inverse(A, 'gmres', pc='jacobi', tol_rel=0.0, tol_abs=tol, recycle=True)
    solver.solve(b)
    niter1 = solver.get_info()['niter']

    assert solver.get_options()['x0'] is not None

    x0 = solver.get_options()['x0']
    x  = solver.solve(b)
    niter2 = solver.get_info()['niter']

    assert niter2 < niter1

    # The stored initial guess is updated in place with the last solution
    assert solver.get_options()['x0'] is x0
    assert x is not x0
    assert np.array_equal(x0.toarray(), x.toarray())

    # A zero right-hand side is recycled as well
    solver.solve(A.domain.zeros())
    assert np.all(x0.toarray() == 0)

#===============================================================================
def test_gmres_float32():

    A = make_operator([16, 16], dtype=np.float32)
    b = random_field(A.domain)

    solver = inverse(A, 'gmres', pc='mg', tol_rel=1e-4)
    x      = solver.solve(b)

    r = b - A.dot(x)

    assert solver.get_info()['success']
    assert x.dtype == np.float32
    assert np.linalg.norm(r.toarray()) <= 1e-3 * np.linalg.norm(b.toarray())

#===============================================================================
@pytest.mark.parametrize('verbose', [0, 1, 2])

def test_gmres_verbose(verbose, capsys):

    A = make_operator([8, 8])
    b = random_field(A.domain)

    solver = inverse(A, 'gmres', tol_rel=1e-8, restart=3, verbose=verbose)
    solver.solve(b)
    info = solver.get_info()

    out = capsys.readouterr().out

    if verbose == 0:
        assert out == ''
    elif verbose == 1:
        assert out.startswith('GMRES: converged in {} iterations'.format(info['niter']))
    else:
        assert 'L2-norm of residual' in out
        assert out.count('| Restart |') == info['nrestarts']

#===============================================================================
def test_gmres_options():

    A = make_operator([8, 8])
    W = StencilVectorSpace([8, 9], [1, 1], [False, False])

    with pytest.raises(ValueError):
        inverse(A, 'cg')

    with pytest.raises(ValueError):
        inverse(A, 'gmres', tol_rel=-1.0)

    with pytest.raises(ValueError):
        inverse(A, 'gmres', restart=0)

    with pytest.raises(ValueError):
        inverse(A, 'gmres', maxiter=2.5)

    with pytest.raises(ValueError):
        inverse(A, 'gmres', max_restarts=-1)

    with pytest.raises(ValueError):
        inverse(A, 'gmres', verbose=-1)

    # Unknown options
    with pytest.raises(TypeError):
        inverse(A, 'gmres', tolerance=1e-6)

    with pytest.raises(TypeError):
        GMRES(A, use_pc='yes')

    with pytest.raises(TypeError):
        GMRES(A, x0=np.zeros(64))

    with pytest.raises(ShapeMismatch):
        GMRES(A, x0=W.zeros())

    with pytest.raises(ShapeMismatch):
        GMRES(A, pc=IdentityOperator(W))

    solver = GMRES(A)

    with pytest.raises(ShapeMismatch):
        solver.solve(W.zeros())

    with pytest.raises(ShapeMismatch):
        solver.solve(A.domain.zeros(), out=W.zeros())

    # Options are validated before being stored
    with pytest.raises(ValueError):
        solver.set_options(restart=-3)
    assert solver.get_options()['restart'] == 30

    with pytest.raises(ValueError):
        solver.set_options(tolerance=1e-6)
    assert 'tolerance' not in solver.get_options()

#===============================================================================
def test_gmres_helpers():

    T = np.triu(np.random.default_rng(0).random((6, 6))) + np.eye(6)
    d = np.arange(6.)

    assert np.allclose(GMRES.solve_triangular(T, d), np.linalg.solve(T, d), rtol=1e-12, atol=1e-12)

    H  = np.array([[3.0], [4.0]])
    cn = np.zeros(1)
    sn = np.zeros(1)

    assert not GMRES.apply_givens_rotation(0, H, cn, sn)
    assert H[0, 0] == 5.0 and H[1, 0] == 0.0
    assert (cn[0], sn[0]) == (0.6, 0.8)

    H = np.zeros((2, 1))
    assert GMRES.apply_givens_rotation(0, H, cn, sn)

#===============================================================================
# PARALLEL TESTS
#===============================================================================
@pytest.mark.parametrize('ncells', [[32,24], [20,17]])
@pytest.mark.parametrize('pc', ['jacobi', 'mg'])
@pytest.mark.parallel

def test_gmres_parallel(ncells, pc):

    from mpi4py import MPI
    from krylovgrid.api.discretization import discretize_space

    comm = MPI.COMM_WORLD

    geometry = Geometry([(0., 1.), (0., 2.)], ncells, [False, True])
    bcs      = [(Dirichlet(1.0), Neumann(lambda x, y: np.cos(np.pi * y))), Periodic()]

    # Serial reference
    Vs = StencilVectorSpace(ncells, [1, 1], [False, True])
    As = LaplacianOperator(Vs, geometry, bcs, alpha=0.5)
    bs = Vs.zeros()
    xx, yy = geometry.meshgrid()
    bs.interior[:] = np.exp(xx) * np.sin(np.pi * yy)
    fs = As.boundary_correction(bs)
    us = spsolve(As.tosparse(), fs.toarray())

    # Distributed solve
    Vp = discretize_space(geometry, comm=comm)
    Ap = LaplacianOperator(Vp, geometry, bcs, alpha=0.5)
    bp = Vp.zeros()
    xx, yy = geometry.meshgrid(Vp.starts, Vp.ends)
    bp.interior[:] = np.exp(xx) * np.sin(np.pi * yy)
    fp = Ap.boundary_correction(bp)

    solver = inverse(Ap, 'gmres', pc=pc, tol_rel=1e-10, restart=50, maxiter=10000)
    x      = solver.solve(fp)
    info   = solver.get_info()

    assert info['success']
    assert np.allclose(x.toarray(), us, rtol=1e-6, atol=1e-6)

    # Same outcome on all processes
    infos = comm.allgather((info['niter'], info['res_norm']))
    assert all(i == infos[0] for i in infos)

#===============================================================================
# SCRIPT FUNCTIONALITY
#===============================================================================
if __name__ == "__main__":
    import sys
    pytest.main( sys.argv )
