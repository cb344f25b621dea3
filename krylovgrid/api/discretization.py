#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
from krylovgrid.geometry       import Geometry
from krylovgrid.ddm.cart       import DomainDecomposition, CartDecomposition
from krylovgrid.ddm.partition  import partition_points
from krylovgrid.linalg.stencil import StencilVectorSpace

__all__ = ('create_cart', 'discretize_space')

#==============================================================================
def create_cart(domain_h, npts, pads):
    """
    Compute the Cartesian decomposition of a grid of values with the block
    structure of the given domain decomposition.

    Parameters
    ----------
    domain_h : krylovgrid.ddm.cart.DomainDecomposition
        The partition of the cells.

    npts : list of int
        Number of values along each direction.

    pads : list of int
        Ghost width along each direction.

    Returns
    -------
    cart : krylovgrid.ddm.cart.CartDecomposition
        Cartesian decomposition of the values.

    """
    global_starts, global_ends = partition_points(domain_h, npts)

    for s, e, p in zip(global_starts, global_ends, pads):
        if not all(e-s+1 >= p):
            raise ValueError(f'Every block must own at least {p} cells, got block sizes {e-s+1}')

    return CartDecomposition(
            domain_h      = domain_h,
            npts          = npts,
            global_starts = global_starts,
            global_ends   = global_ends,
            pads          = pads)

#==============================================================================
def discretize_space(geometry, *, comm=None, pads=1, dtype=float):
    """
    Create the space of grid functions over a cell-centered geometry,
    distributed over the processes of a communicator.

    Parameters
    ----------
    geometry : krylovgrid.geometry.Geometry
        Cell-centered grid.

    comm : mpi4py.MPI.Comm | None
        Communicator (a duplicate is used). If None, or if it contains a
        single process, the space is serial.

    pads : int | list of int
        Ghost width along each direction (at least 1).

    dtype : type
        Type of the values (float64 or float32).

    Returns
    -------
    V : krylovgrid.linalg.stencil.StencilVectorSpace
        The space of grid functions.

    """
    if not isinstance(geometry, Geometry):
        raise TypeError(f'Expected a Geometry, got {type(geometry)}')

    if isinstance(pads, int):
        pads = [pads] * geometry.ndim
    if len(pads) != geometry.ndim or any(p < 1 for p in pads):
        raise ValueError(f'Ghost width must be at least 1 along each direction, got {pads}')

    if comm is not None and comm.Get_size() > 1:
        # Create a copy of the communicator
        comm     = comm.Dup()
        domain_h = DomainDecomposition(geometry.ncells, geometry.periodic, comm=comm,
                                       min_blocksizes=pads, try_uniform=True)
        cart     = create_cart(domain_h, geometry.ncells, pads)
        return StencilVectorSpace(cart, dtype=dtype)

    return StencilVectorSpace(geometry.ncells, pads, geometry.periodic, dtype=dtype)
