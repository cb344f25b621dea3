# coding: utf-8
#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
"""
Method of manufactured solutions for the Poisson equation on a distributed
cell-centered grid, solved with restarted GMRES and a multigrid
preconditioner.

Run in parallel with:

    mpirun -n 4 python poisson_2d_gmres.py

"""
import numpy as np

#==============================================================================
class Poisson2D:
    """
    Exact solution to the 2D Poisson equation, to be employed for the method
    of manufactured solutions.

    :code
    $-(\\partial^2_{xx} + \\partial^2_{yy}) \\phi(x,y) = \\rho(x,y)$

    """
    def __init__( self ):
        from sympy import symbols, sin, cos, pi, lambdify
        x,y = symbols('x y')
        phi_e = cos( 2*pi*(x+0.1) ) * sin( pi*y ) * y
        rho_e = -phi_e.diff(x,2)-phi_e.diff(y,2)
        dphi_dn_e = phi_e.diff(y)
        self._phi = lambdify( [x,y], phi_e )
        self._rho = lambdify( [x,y], rho_e )
        self._dphi_dn = lambdify( [x,y], dphi_dn_e )

    def phi( self, x, y ):
        return self._phi( x, y )

    def rho( self, x, y ):
        return self._rho( x, y )

    def dphi_dn( self, x, y ):
        """ Outward normal derivative on the upper face y=1. """
        return self._dphi_dn( x, y )

    @property
    def domain( self ):
        return ((0,1), (0,1))

    @property
    def periodic( self ):
        return (True, False)

#==============================================================================
if __name__ == '__main__':

    from mpi4py import MPI
    from time import time

    from krylovgrid.geometry        import Geometry
    from krylovgrid.linalg.boundary import Dirichlet, Neumann, Periodic
    from krylovgrid.api.poisson     import GMRESPoisson

    timing = {}

    # Communicator, size, rank
    mpi_comm = MPI.COMM_WORLD
    mpi_size = mpi_comm.Get_size()
    mpi_rank = mpi_comm.Get_rank()

    # Input data: number of cells
    nc1 = 128; nc2 = 128

    # Method of manufactured solution
    model = Poisson2D()

    # Boundary conditions: u=0 on y=0, du/dn given on y=1
    geometry = Geometry( model.domain, [nc1,nc2], model.periodic )
    bcs      = [Periodic(), (Dirichlet(0.0), Neumann( model.dphi_dn ))]

    # Build solver (decomposition, operator, preconditioner)
    t0 = time()
    solver = GMRESPoisson( geometry, bcs, comm=mpi_comm, pc='mg', restart=30 )
    t1 = time()
    timing['setup'] = t1-t0

    # Build right-hand side vector
    xx, yy = solver.meshgrid()
    rhs = solver.make_rhs()
    rhs.interior[:] = model.rho( xx, yy )
    rhs = solver.boundary_correction( rhs )

    # Solve linear system
    phi = solver.make_lhs()
    solver.set_verbose( 2 )
    t0 = time()
    info = solver.solve( phi, rhs, tol_rel=1e-10 )
    t1 = time()
    timing['solution'] = t1-t0

    # Compute discrete L2 norm of error
    t0 = time()
    err = solver.make_rhs()
    err.interior[:] = phi.interior - model.phi( xx, yy )
    h1, h2 = geometry.spacing
    err2 = solver.norm2( err ) * np.sqrt( h1*h2 )
    t1 = time()
    timing['diagnostics'] = t1-t0

    # Print some information to terminal
    for i in range( mpi_size ):
        if i == mpi_rank:
            print( '--------------------------------------------------' )
            print( ' RANK = {}'.format( mpi_rank ) )
            print( '--------------------------------------------------' )
            print( '> Grid          :: [{nc1},{nc2}]'.format( nc1=nc1, nc2=nc2 ) )
            print( '> Local block   :: {}'.format( solver.space.local_npts ) )
            print( '> GMRES info    :: ', info )
            print( '> L2 error      :: {:.2e}'.format( err2 ) )
            print( '' )
            print( '> Setup time    :: {:.2e}'.format( timing['setup'] ) )
            print( '> Solution time :: {:.2e}'.format( timing['solution'] ) )
            print( '> Evaluat. time :: {:.2e}'.format( timing['diagnostics'] ) )
            print( '', flush=True )
        mpi_comm.Barrier()
