import pytest
import numpy as np

from krylovgrid.ddm.partition import compute_dims, compute_dims_general, compute_dims_uniform, partition_points
from krylovgrid.ddm.cart      import DomainDecomposition, block_bounds

#==============================================================================
@pytest.mark.parametrize( 'mpi_size', [1,2,5,10] )

def test_partition_1d_uniform( mpi_size ):

    # ...
    # Should pass: all blocks are identical and have size=11
    n1 = 11 * mpi_size
    p1 = 3

    dims, blocksizes = compute_dims( mpi_size, [n1,], [p1,], try_uniform=True )

    assert dims[0] == mpi_size
    assert blocksizes[0] == 11

    # ...
    # Should fail: minimum block size is too large
    n1 = 4 * mpi_size
    p1 = 5

    with pytest.raises( Exception ):
        dims, blocksizes = compute_dims( mpi_size, [n1,], [p1,], try_uniform=True )

#==============================================================================
@pytest.mark.parametrize( 'mpi_size', [1,2,5,10] )

def test_partition_1d_general( mpi_size ):

    # ...
    # Should pass, nominal block size is 11
    n1 = 11 * mpi_size + int( mpi_size > 1 )
    p1 = 4

    dims, blocksizes = compute_dims( mpi_size, [n1,], [p1,] )

    assert dims[0] == mpi_size
    assert blocksizes[0] == 11

    # ...
    # Should fail: minimum block size is too large
    n1 = 4 * mpi_size + int( mpi_size > 1 )
    p1 = 5

    with pytest.raises( Exception ):
        dims, blocksizes = compute_dims( mpi_size, [n1,], [p1,] )

#==============================================================================
def test_partition_3d():

    npts = [64,128,50]
    mpi_size = 100

    # ...
    # Uniform partition, yields small block size along 3rd dimension
    dims, blocksizes = compute_dims( mpi_size, npts, try_uniform=True )

    assert tuple( dims ) == (2, 2, 25)
    assert tuple( blocksizes ) == (32, 64, 2)

    # ...
    # General partition: blocks are not all identical but closer to a cube
    dims, blocksizes = compute_dims( mpi_size, npts, [3,3,3], try_uniform=True )

    assert tuple( dims ) == (5, 5, 4)
    assert tuple( blocksizes ) == (12, 25, 12)

#==============================================================================
def test_partition_2d_square():

    assert compute_dims_general( 4, [16,16] ) == ([2,2], [8,8])
    assert compute_dims_uniform( 4, [16,16] ) == ([2,2], [8,8])
    assert compute_dims_general( 1, [16,16] ) == ([1,1], [16,16])
    assert compute_dims_general( 5, [55] )    == ([5], [11])

#==============================================================================
def test_partition_dims_mask():

    dims, blocksizes = compute_dims( 4, [16,16], mpi_dims_mask=[True, False] )

    assert tuple( dims ) == (4, 1)
    assert tuple( blocksizes ) == (4, 16)

#==============================================================================
@pytest.mark.parametrize( 'ncells', [[7], [8,5], [4,3,6]] )

def test_partition_points_serial( ncells ):

    domain_h = DomainDecomposition( ncells, [False]*len(ncells) )
    global_starts, global_ends = partition_points( domain_h, ncells )

    for n, s, e in zip( ncells, global_starts, global_ends ):
        assert list( s ) == [0]
        assert list( e ) == [n-1]

#==============================================================================
@pytest.mark.parametrize( 'n', [1,7,16,135] )
@pytest.mark.parametrize( 'nblocks', [1,2,3,5] )

def test_block_bounds( n, nblocks ):

    if nblocks > n:
        pytest.skip( 'More blocks than cells' )

    starts, ends = block_bounds( n, nblocks )
    sizes = ends - starts + 1

    assert starts[0] == 0
    assert ends[-1] == n-1
    assert all( starts[1:] == ends[:-1] + 1 )
    assert sizes.max() - sizes.min() <= 1
    assert all( np.diff( sizes ) <= 0 )

#==============================================================================
def test_domain_decomposition_serial():

    domain_h = DomainDecomposition( [12,5], [True,False], min_blocksizes=[2,2], try_uniform=True )

    assert domain_h.nprocs == [1,1]
    assert domain_h.coords == (0,0)
    assert domain_h.starts == (0,0)
    assert domain_h.ends   == (11,4)
    assert domain_h.local_ncells == (12,5)
    assert domain_h.comm_cart is None
    assert not domain_h.is_parallel

    with pytest.raises( ValueError ):
        DomainDecomposition( [1,5], [False,False], min_blocksizes=[2,2] )

#==============================================================================
# SCRIPT FUNCTIONALITY
#==============================================================================
if __name__ == "__main__":
    import sys
    pytest.main( sys.argv )
