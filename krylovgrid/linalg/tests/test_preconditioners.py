import pytest
import numpy as np

from krylovgrid.geometry               import Geometry
from krylovgrid.linalg.basic           import IdentityOperator
from krylovgrid.linalg.stencil         import StencilVectorSpace
from krylovgrid.linalg.boundary        import Dirichlet, Neumann, Periodic
from krylovgrid.linalg.laplacian       import LaplacianOperator
from krylovgrid.linalg.preconditioners import (make_preconditioner, IdentityPreconditioner,
                                               JacobiPreconditioner, MultigridPreconditioner)
from krylovgrid.linalg.solvers         import inverse

#===============================================================================
def make_operator(ncells, periodic, bcs=None, alpha=0.0):
    ndim     = len(ncells)
    geometry = Geometry([(0., 1.)]*ndim, ncells, periodic)
    V        = StencilVectorSpace(ncells, [1]*ndim, periodic)
    return LaplacianOperator(V, geometry, bcs, alpha=alpha)

def random_field(V, seed=0):
    x = V.zeros()
    x.interior[:] = np.random.default_rng(seed).random(x.interior.shape)
    return x

#===============================================================================
def test_make_preconditioner():

    A = make_operator([8,8], [False,False])

    assert isinstance(make_preconditioner(A, None)      , IdentityPreconditioner)
    assert isinstance(make_preconditioner(A, 'Identity'), IdentityPreconditioner)
    assert isinstance(make_preconditioner(A, 'JACOBI')  , JacobiPreconditioner)
    assert isinstance(make_preconditioner(A, 'mg')      , MultigridPreconditioner)

    M = make_preconditioner(A, 'mg', nu1=1, nu2=3, max_levels=2)
    assert M.nlevels == 2

    # An operator is used as it is
    I = IdentityOperator(A.domain)
    assert make_preconditioner(A, I) is I

    with pytest.raises(ValueError):
        make_preconditioner(A, 'ilu')

    with pytest.raises(ValueError):
        make_preconditioner(A, I, nu1=2)

#===============================================================================
def test_identity_preconditioner():

    A = make_operator([5,6], [False,True])
    M = make_preconditioner(A, 'identity')
    x = random_field(A.domain)
    y = A.domain.zeros()

    M.dot(x, out=y)

    assert np.array_equal(y.toarray(), x.toarray())
    assert y is not x

#===============================================================================
@pytest.mark.parametrize('ncells', [[9], [6,5], [4,3,5]])

def test_jacobi_preconditioner(ncells):

    ndim = len(ncells)
    A = make_operator(ncells, [False]*ndim, [(Dirichlet(), Neumann())]*ndim, alpha=0.5)
    M = JacobiPreconditioner(A)
    x = random_field(A.domain, seed=1)
    y = M.dot(x)

    d = A.tosparse().diagonal()

    assert np.allclose(y.toarray(), x.toarray() / d, rtol=1e-14, atol=1e-14)
    assert np.allclose(M.tosparse().diagonal(), 1 / d, rtol=1e-14, atol=1e-14)
    assert not y.ghost_regions_in_sync

#===============================================================================
def test_jacobi_preconditioner_zero_diagonal():

    # A single periodic cell has a zero diagonal when alpha = 0
    with pytest.warns(RuntimeWarning):
        A = make_operator([1], [True], [Periodic()])

    with pytest.raises(ValueError):
        JacobiPreconditioner(A)

#===============================================================================
@pytest.mark.parametrize(('ncells', 'periodic', 'nlevels'),
                         [([16,16], [False,False], 5),
                          ([16]   , [True]       , 4),
                          ([12,8] , [False,True] , 3),
                          ([7,8]  , [False,False], 1)])

def test_multigrid_hierarchy(ncells, periodic, nlevels):

    A = make_operator(ncells, periodic, alpha=1.0)
    M = MultigridPreconditioner(A)

    assert M.nlevels == nlevels
    assert M.level_shapes[0] == tuple(ncells)
    for fine, coarse in zip(M.level_shapes[:-1], M.level_shapes[1:]):
        assert all(n == 2*m for n, m in zip(fine, coarse))

    M = MultigridPreconditioner(A, max_levels=1)
    assert M.nlevels == 1

#===============================================================================
@pytest.mark.parametrize('ncells', [[32], [16,8], [8,4,8]])

def test_multigrid_linear(ncells):

    ndim = len(ncells)
    A = make_operator(ncells, [False]*ndim, [(Neumann(), Dirichlet())]*ndim)
    M = MultigridPreconditioner(A, nu1=1, nu2=1)

    x = random_field(A.domain, seed=5)
    y = random_field(A.domain, seed=6)
    z = 2*x - 3*y

    Mx = M.dot(x).toarray()
    My = M.dot(y).toarray()
    Mz = M.dot(z).toarray()

    assert np.allclose(Mz, 2*Mx - 3*My, rtol=1e-10, atol=1e-10)

    # Input vector is not modified
    assert np.array_equal(z.toarray(), 2*x.toarray() - 3*y.toarray())

#===============================================================================
@pytest.mark.parametrize('bcs', [None, Neumann()])

def test_multigrid_accelerates_gmres(bcs):

    A = make_operator([32,32], [False,False], bcs, alpha=1.0)
    b = random_field(A.domain, seed=7)

    solver = inverse(A, 'gmres', pc='mg', tol_rel=1e-8, restart=50, maxiter=200)
    x      = solver.solve(b)
    info   = solver.get_info()

    r = b - A.dot(x)
    assert info['success']
    assert info['niter'] < 50
    assert np.linalg.norm(r.toarray()) <= 1e-7 * np.linalg.norm(b.toarray())

    # Same number of iterations is not enough without multigrid
    for pc in ['identity', 'jacobi']:
        solver = inverse(A, 'gmres', pc=pc, tol_rel=1e-8, restart=50, maxiter=info['niter'])
        solver.solve(b)
        assert not solver.get_info()['success']
        assert solver.get_info()['res_norm'] > info['res_norm']

#===============================================================================
def test_multigrid_errors():

    A = make_operator([8,8], [False,False])

    with pytest.raises(ValueError):
        MultigridPreconditioner(A, nu1=-1)

    with pytest.raises(ValueError):
        MultigridPreconditioner(A, max_levels=0)

    with pytest.raises(ValueError):
        MultigridPreconditioner(A, coarse_sweeps=0)

    with pytest.raises(TypeError):
        MultigridPreconditioner(IdentityOperator(A.domain))

    with pytest.raises(TypeError):
        JacobiPreconditioner(IdentityOperator(A.domain))

#===============================================================================
# SCRIPT FUNCTIONALITY
#===============================================================================
if __name__ == "__main__":
    import sys
    pytest.main( sys.argv )
