#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
import numpy as np

from sympy.ntheory import factorint


__all__ = ('compute_dims', 'compute_dims_general', 'compute_dims_uniform', 'partition_points')

#==============================================================================
def compute_dims( nnodes, gridsizes, min_blocksizes=None, try_uniform=False, mpi_dims_mask=None ):
    """
    Compute the number of processes along each direction of the Cartesian
    topology over which a grid of cells is distributed.

    Parameters
    ----------
    nnodes : int
        Number of processes in the Cartesian topology.

    gridsizes : list of int
        Number of cells along each direction.

    min_blocksizes : list of int
        Minimum acceptable size of a block along each direction (typically the
        ghost width, as ghost layers are filled by the nearest neighbor only).

    try_uniform : bool
        If the total number of cells is a multiple of nnodes, first try a
        decomposition into identical blocks.

    mpi_dims_mask : list of bool
        Directions that may be split (default: all). A masked direction keeps
        a single block of gridsizes[i] cells.

    Returns
    -------
    dims : list of int
        Number of processes along each direction.

    blocksizes : list of int
        Nominal block size along each direction.

    """
    assert nnodes > 0
    assert all( s > 0 for s in gridsizes )
    assert np.prod( gridsizes ) >= nnodes

    if min_blocksizes is not None:
        assert len( min_blocksizes ) == len( gridsizes )
        assert all( m > 0 for m in min_blocksizes )
        if any( s < m for s, m in zip( gridsizes, min_blocksizes ) ):
            raise ValueError( f'Grid {tuple( gridsizes )} is smaller than the minimum block sizes {tuple( min_blocksizes )}' )

    def too_small( blocksizes ):
        return min_blocksizes is not None and any( b < m for b, m in zip( blocksizes, min_blocksizes ) )

    uniform = (mpi_dims_mask is None and np.prod( gridsizes ) % nnodes == 0)

    if try_uniform and uniform:
        dims, blocksizes = compute_dims_uniform( nnodes, gridsizes )
        if not too_small( blocksizes ):
            return dims, blocksizes

    dims, blocksizes = compute_dims_general( nnodes, gridsizes, mpi_dims_mask=mpi_dims_mask )
    if too_small( blocksizes ):
        raise ValueError( f'Cannot distribute grid {tuple( gridsizes )} over {nnodes} processes'
                          f' with minimum block sizes {tuple( min_blocksizes )}' )

    return dims, blocksizes

#==============================================================================
def _least_split( candidates, nprocs ):
    # First candidate direction with the fewest processes
    return min( candidates, key=lambda i: nprocs[i] )

#==============================================================================
def compute_dims_general( mpi_size, npts, mpi_dims_mask=None ):
    """
    Greedy decomposition: the prime factors of mpi_size, largest first, each
    divide the direction with the largest current block size.
    """
    ndims = len( npts )

    if mpi_dims_mask is None:
        mpi_dims_mask = [True] * ndims

    assert len( mpi_dims_mask ) == ndims, "mpi_dims_mask must have one entry for each dimension."
    assert all( isinstance( m, bool ) for m in mpi_dims_mask ), "mpi_dims_mask must only contain True/False values."
    assert any( mpi_dims_mask ), "mpi_dims_mask must contain at least one True value."

    nprocs = [1] * ndims
    shape  = [n if split else -1 for n, split in zip( npts, mpi_dims_mask )]

    for a in sorted( factorint( mpi_size, multiple=True ), reverse=True ):

        largest = max( shape )
        i = _least_split( [d for d in range( ndims ) if shape[d] == largest], nprocs )

        nprocs[i] *= a
        shape [i] //= a

    blocksizes = [s if split else n for s, n, split in zip( shape, npts, mpi_dims_mask )]

    return nprocs, blocksizes

#==============================================================================
def compute_dims_uniform( mpi_size, npts ):
    """
    Decomposition into identical blocks: every prime factor of mpi_size is
    taken from the grid size that contains it with the highest multiplicity.
    """
    ndims   = len( npts )
    nprocs  = [1] * ndims
    factors = [factorint( int( n ) ) for n in npts]

    for a, power in factorint( int( mpi_size ) ).items():
        for _ in range( power ):

            exponents = [f.get( a, 0 ) for f in factors]
            highest   = max( exponents )
            i = _least_split( [d for d in range( ndims ) if exponents[d] == highest], nprocs )

            nprocs [i]    *= a
            factors[i][a]  = factors[i].get( a, 0 ) - 1

    blocksizes = [int( np.prod( [p**k for p, k in f.items()] ) ) for f in factors]

    return nprocs, blocksizes

#==============================================================================
def partition_points( domain_decomposition, npts ):
    """
    Compute the global start/end indices of every block along each direction,
    for a grid of points with the same block structure as the cells of the
    domain decomposition.

    The last block along each direction absorbs the difference between the
    number of points and the number of cells.

    Parameters
    ----------
    domain_decomposition : krylovgrid.ddm.cart.DomainDecomposition
        The partition of the cells.

    npts : list or tuple of int
        Number of points along each direction.

    Returns
    -------
    global_starts : list of numpy.ndarray
        For each direction, the start index of every block.

    global_ends : list of numpy.ndarray
        For each direction, the end index of every block.

    """
    assert len( npts ) == domain_decomposition.ndim

    global_starts = []
    global_ends   = []

    for n, cell_ends in zip( npts, domain_decomposition.block_ends ):
        ends = cell_ends.copy()
        ends[-1] = n - 1
        global_starts.append( np.concatenate( ([0], ends[:-1] + 1) ) )
        global_ends  .append( ends )

    return global_starts, global_ends
