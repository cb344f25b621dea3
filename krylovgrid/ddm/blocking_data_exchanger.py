#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
import numpy as np
from mpi4py import MPI

from krylovgrid.ddm.cart import CartDecomposition, find_mpi_type


__all__ = ('BlockingCartDataExchanger',)

#===============================================================================
class BlockingCartDataExchanger:
    """
    Blocking update of the ghost layers of the local arrays of a grid function
    distributed according to a Cartesian decomposition.

    The directions are processed one after the other: the layers exchanged
    along an axis span the full local shape, ghosts of the previous axes
    included, so that edge and corner ghost cells are filled too.
    Ghost layers at the faces of a non-periodic domain have no neighbor
    (MPI.PROC_NULL) and are left untouched.

    Parameters
    ----------
    cart : krylovgrid.ddm.cart.CartDecomposition
        Layout of the distributed grid function.

    dtype : [type | str | numpy.dtype | mpi4py.MPI.Datatype]
        Datatype of a single value.

    """
    def __init__( self, cart, dtype ):

        assert isinstance( cart, CartDecomposition )
        assert cart.is_parallel

        self._cart      = cart
        self._comm      = cart.comm_cart
        self._subarrays = self._create_subarray_types( cart, find_mpi_type( dtype ) )

    #---------------------------------------------------------------------------
    @property
    def cart( self ):
        return self._cart

    #---------------------------------------------------------------------------
    def update_ghost_regions( self, array ):
        """
        Fill the ghost layers of a local array with the values owned by the
        neighboring processes.

        Parameters
        ----------
        array : numpy.ndarray
            Local array of shape cart.shape (ghost layers included).

        """
        assert isinstance( array, np.ndarray )
        assert array.shape == self._cart.shape

        comm = self._comm

        for axis in range( self._cart.ndim ):

            if self._cart.pads[axis] == 0:
                continue

            requests = []
            for disp in (-1, 1):
                halo = self._cart.halo( axis, disp )
                send_type, recv_type = self._subarrays[axis, disp]

                # tag >= 0, one per displacement
                tag = disp + 1
                requests.append( comm.Irecv( (array, 1, recv_type), halo.source, tag ) )
                requests.append( comm.Isend( (array, 1, send_type), halo.dest  , tag ) )

            MPI.Request.Waitall( requests )

    #---------------------------------------------------------------------------
    @staticmethod
    def _create_subarray_types( cart, mpi_type ):
        """
        MPI subarray datatypes (send, recv) of every ghost-layer exchange,
        keyed by (axis, disp). The layers are non-contiguous slices of the
        local array, hence the subarray types.
        """
        sizes = list( cart.shape )
        types = {}

        for axis in range( cart.ndim ):

            if cart.pads[axis] == 0:
                continue

            for disp in (-1, 1):
                halo = cart.halo( axis, disp )
                types[axis, disp] = tuple(
                    mpi_type.Create_subarray( sizes=sizes, subsizes=list( halo.subsizes ), starts=list( starts ) ).Commit()
                    for starts in (halo.send_starts, halo.recv_starts) )

        return types
