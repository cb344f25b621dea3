#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
from collections import namedtuple

import numpy as np
from mpi4py import MPI

from krylovgrid.ddm.partition import compute_dims


__all__ = ('HaloRegion', 'find_mpi_type', 'block_bounds', 'DomainDecomposition', 'CartDecomposition')

#===============================================================================
HaloRegion = namedtuple( 'HaloRegion', ['source', 'dest', 'subsizes', 'send_starts', 'recv_starts'] )
HaloRegion.__doc__ = """
One ghost-layer exchange of a local array: the layer of shape 'subsizes'
starting at 'send_starts' is sent to rank 'dest', and the layer received from
rank 'source' is written at 'recv_starts' (local indices, ghosts included).
"""

#===============================================================================
def find_mpi_type( dtype ):
    """
    Find correct MPI datatype that corresponds to user-provided datatype.

    Parameters
    ----------
    dtype : [type | str | numpy.dtype | mpi4py.MPI.Datatype]
        Datatype for which the corresponding MPI datatype is requested.

    Returns
    -------
    mpi_type : mpi4py.MPI.Datatype
        MPI datatype to be used for communication.

    """
    if isinstance( dtype, MPI.Datatype ):
        return dtype

    return MPI._typedict[np.dtype( dtype ).char]

#===============================================================================
def block_bounds( n, nblocks ):
    """
    Split n cells into nblocks contiguous blocks whose sizes differ by at most
    one, the larger blocks coming first.

    Returns
    -------
    starts, ends : numpy.ndarray
        First and last cell index of every block.

    """
    assert 1 <= nblocks <= n

    sizes = np.full( nblocks, n // nblocks, dtype=int )
    sizes[:n % nblocks] += 1

    ends   = np.cumsum( sizes ) - 1
    starts = ends - sizes + 1

    return starts, ends

#===============================================================================
class DomainDecomposition:
    """
    Partition of a structured grid of cells into rectangular blocks, one per
    process of an MPI Cartesian topology.

    Parameters
    ----------
    ncells : list or tuple of int
        Number of cells along each direction.

    periods : list or tuple of bool
        Periodicity along each direction.

    comm : mpi4py.MPI.Comm | None
        Communicator of the processes sharing the grid. If None the grid is
        not distributed and a single block covers the whole domain.

    min_blocksizes : list of int | None
        Minimum number of cells of a block along each direction.

    try_uniform : bool
        Prefer a decomposition into identical blocks when one exists.

    """
    def __init__( self, ncells, periods, comm=None, *, min_blocksizes=None, try_uniform=False ):

        assert len( ncells ) == len( periods )
        assert all( n >= 1 for n in ncells )
        assert all( isinstance( period, bool ) for period in periods )
        if comm is not None: assert isinstance( comm, MPI.Comm )

        self._ncells  = tuple( ncells )
        self._periods = tuple( periods )
        self._ndims   = len( ncells )
        self._comm    = comm
        self._size    = 1 if comm is None else comm.Get_size()
        self._rank    = 0 if comm is None else comm.Get_rank()

        self._nprocs, _ = compute_dims( self._size, self._ncells, min_blocksizes=min_blocksizes, try_uniform=try_uniform )
        if any( d > n for d, n in zip( self._nprocs, self._ncells ) ):
            raise ValueError( f"Cannot distribute {self._ncells} cells over {self._size} processes" )

        bounds = [block_bounds( n, d ) for n, d in zip( self._ncells, self._nprocs )]
        self._block_starts = [s for s, _ in bounds]
        self._block_ends   = [e for _, e in bounds]

        if comm is None:
            self._comm_cart = None
            self._coords    = (0,) * self._ndims
        else:
            # Rank order is kept so that block ownership follows comm ranks
            self._comm_cart = comm.Create_cart( dims=self._nprocs, periods=self._periods, reorder=False )
            self._coords    = tuple( self._comm_cart.Get_coords( self._comm_cart.Get_rank() ) )

        self._starts = tuple( s[c] for s, c in zip( self._block_starts, self._coords ) )
        self._ends   = tuple( e[c] for e, c in zip( self._block_ends  , self._coords ) )

    #---------------------------------------------------------------------------
    # Global properties (same for each process)
    #---------------------------------------------------------------------------
    @property
    def ndim( self ):
        return self._ndims

    @property
    def ncells( self ):
        return self._ncells

    @property
    def periods( self ):
        return self._periods

    @property
    def size( self ):
        return self._size

    @property
    def rank( self ):
        return self._rank

    @property
    def comm( self ):
        return self._comm

    @property
    def comm_cart( self ):
        """ Communicator with the Cartesian topology (None if not distributed). """
        return self._comm_cart

    @property
    def nprocs( self ):
        """ Number of blocks along each direction. """
        return self._nprocs

    @property
    def block_starts( self ):
        """ First cell of every block, for each direction. """
        return self._block_starts

    @property
    def block_ends( self ):
        """ Last cell of every block, for each direction. """
        return self._block_ends

    @property
    def is_parallel( self ):
        return self._comm is not None

    #---------------------------------------------------------------------------
    # Local properties
    #---------------------------------------------------------------------------
    @property
    def starts( self ):
        return self._starts

    @property
    def ends( self ):
        return self._ends

    @property
    def coords( self ):
        return self._coords

    @property
    def local_ncells( self ):
        return tuple( e-s+1 for s, e in zip( self._starts, self._ends ) )

#===============================================================================
class CartDecomposition:
    """
    Layout of a distributed grid of values: the block of values owned by each
    process of the Cartesian topology of a DomainDecomposition, surrounded by
    ghost layers of fixed width that are filled by the nearest neighbors.

    Parameters
    ----------
    domain_h : DomainDecomposition
        The partition of the cells.

    npts : list or tuple of int
        Number of values in the global grid along each direction.

    global_starts : list of numpy.ndarray
        For each direction, the first index owned by every block.

    global_ends : list of numpy.ndarray
        For each direction, the last index owned by every block.

    pads : list or tuple of int
        Width of the ghost layers along each direction.

    """
    def __init__( self, domain_h, npts, global_starts, global_ends, pads ):

        assert isinstance( domain_h, DomainDecomposition )
        assert len( npts ) == len( global_starts ) == len( global_ends ) == len( pads ) == domain_h.ndim
        assert all( n >= 1 for n in npts )
        assert all( p >= 0 for p in pads )

        self._domain_h      = domain_h
        self._npts          = tuple( npts )
        self._global_starts = tuple( global_starts )
        self._global_ends   = tuple( global_ends )
        self._pads          = tuple( pads )
        self._ndims         = len( npts )

        coords       = domain_h.coords
        self._starts = tuple( s[c] for s, c in zip( self._global_starts, coords ) )
        self._ends   = tuple( e[c] for e, c in zip( self._global_ends  , coords ) )
        self._shape  = tuple( e-s+1+2*p for s, e, p in zip( self._starts, self._ends, self._pads ) )

        self._halos = {}
        if not domain_h.is_parallel:
            return

        # Ghost layers are filled by the nearest neighbor only
        assert all( e-s+1 >= p for s, e, p in zip( self._starts, self._ends, self._pads ) )

        for axis in range( self._ndims ):
            for disp in (-1, 1):
                self._halos[axis, disp] = self._compute_halo( axis, disp )

    #---------------------------------------------------------------------------
    # Global properties (same for each process)
    #---------------------------------------------------------------------------
    @property
    def domain_h( self ):
        return self._domain_h

    @property
    def ndim( self ):
        return self._ndims

    @property
    def npts( self ):
        return self._npts

    @property
    def pads( self ):
        return self._pads

    @property
    def periods( self ):
        return self._domain_h.periods

    @property
    def comm( self ):
        return self._domain_h.comm

    @property
    def comm_cart( self ):
        return self._domain_h.comm_cart

    @property
    def size( self ):
        return self._domain_h.size

    @property
    def rank( self ):
        return self._domain_h.rank

    @property
    def nprocs( self ):
        return self._domain_h.nprocs

    @property
    def global_starts( self ):
        return self._global_starts

    @property
    def global_ends( self ):
        return self._global_ends

    @property
    def is_parallel( self ):
        return self._domain_h.is_parallel

    #---------------------------------------------------------------------------
    # Local properties
    #---------------------------------------------------------------------------
    @property
    def starts( self ):
        return self._starts

    @property
    def ends( self ):
        return self._ends

    @property
    def coords( self ):
        return self._domain_h.coords

    @property
    def shape( self ):
        """ Shape of the local array, ghost layers included. """
        return self._shape

    #---------------------------------------------------------------------------
    def halo( self, axis, disp ):
        """
        HaloRegion of the exchange that moves data by 'disp' (-1 or +1) blocks
        along 'axis'.
        """
        return self._halos[axis, disp]

    #---------------------------------------------------------------------------
    def _compute_halo( self, axis, disp ):

        source, dest = self.comm_cart.Shift( axis, disp )

        n = self._ends[axis] - self._starts[axis] + 1
        p = self._pads[axis]

        subsizes = list( self._shape )
        subsizes[axis] = p

        send_starts = [0] * self._ndims
        recv_starts = [0] * self._ndims

        # Forward: last owned layers go to the lower ghosts of 'dest'
        # Backward: first owned layers go to the upper ghosts of 'dest'
        send_starts[axis] = n if disp > 0 else p
        recv_starts[axis] = 0 if disp > 0 else n + p

        return HaloRegion( source, dest, tuple( subsizes ), tuple( send_starts ), tuple( recv_starts ) )
