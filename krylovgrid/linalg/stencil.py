#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
import numpy as np
from mpi4py import MPI

from krylovgrid.linalg.basic      import VectorSpace, Vector, check_conformant
from krylovgrid.linalg.vector_ops import global_sum
from krylovgrid.ddm.cart          import CartDecomposition
from krylovgrid.ddm.blocking_data_exchanger import BlockingCartDataExchanger

__all__ = ('StencilVectorSpace', 'StencilVector')

#===============================================================================
class StencilVectorSpace( VectorSpace ):
    """
    Vector space of scalar fields over a (possibly distributed) structured
    grid, where each process stores its block of values surrounded by ghost
    regions. Two different initializations are possible:

    - serial  : StencilVectorSpace( npts, pads, periods, dtype=float )
    - parallel: StencilVectorSpace( cart, dtype=float )

    Parameters
    ----------
    npts : tuple-like (int)
        Number of entries along each direction
        (= global dimensions of vector space).

    pads : tuple-like (int)
        Width of the ghost region along each direction.

    periods : tuple-like (bool)
        Periodicity along each direction.

    dtype : type
        Type of scalar entries (float64 or float32).

    cart : krylovgrid.ddm.cart.CartDecomposition
        Tensor-product grid decomposition according to MPI Cartesian topology.

    """
    def __init__( self, *args, **kwargs ):

        if len(args) == 1 or ('cart' in kwargs):
            self._init_parallel( *args, **kwargs )
        else:
            self._init_serial  ( *args, **kwargs )

        # Location of the owned values inside the local array
        self._interior_index = tuple( slice( p, p+e-s+1 ) for s,e,p in
                                      zip( self._starts, self._ends, self._pads ) )

    # ...
    def _init_serial( self, npts, pads, periods, dtype=float ):

        assert len(npts) == len(pads) == len(periods)
        assert all( p >= 0 for p in pads )
        assert all( n >= p for n,p,P in zip( npts, pads, periods ) if P )
        self._parallel = False

        # Sequential attributes
        self._starts  = tuple( 0   for n in npts )
        self._ends    = tuple( n-1 for n in npts )
        self._pads    = tuple( pads )
        self._periods = tuple( periods )
        self._dtype   = np.dtype( dtype )
        self._ndim    = len( npts )

        # Global dimensions of vector space
        self._npts       = tuple( npts )
        # Local dimensions of vector space
        self._local_npts = tuple( npts )

        self._cart         = None
        self._synchronizer = None

    # ...
    def _init_parallel( self, cart, dtype=float ):

        assert isinstance( cart, CartDecomposition )
        assert cart.is_parallel
        self._parallel = True

        # Sequential attributes
        self._starts  = cart.starts
        self._ends    = cart.ends
        self._pads    = cart.pads
        self._periods = cart.periods
        self._dtype   = np.dtype( dtype )
        self._ndim    = len(cart.starts)

        # Global dimensions of vector space
        self._npts       = cart.npts
        # Local dimensions of vector space
        self._local_npts = tuple( e-s+1 for s,e in zip(cart.starts, cart.ends) )

        # Parallel attributes
        self._cart         = cart
        self._synchronizer = BlockingCartDataExchanger( cart, dtype )

    #--------------------------------------
    # Abstract interface
    #--------------------------------------
    @property
    def dimension( self ):
        """ Global number of grid values. """
        return int( np.prod( self._npts ) )

    # ...
    @property
    def dtype( self ):
        return self._dtype

    # ...
    def zeros( self ):
        """ New field of the space, zero everywhere (ghost layers included). """
        return StencilVector( self )

    # ...
    def inner( self, x, y ):
        """
        Global Euclidean inner product of the owned values of x and y. Each
        process contributes the dot product of its block; the partial sums
        are combined by krylovgrid.linalg.vector_ops.global_sum.

        """
        assert isinstance( x, StencilVector )
        assert isinstance( y, StencilVector )

        idx   = self._interior_index
        local = np.dot( x._data[idx].ravel(), y._data[idx].ravel() )

        return global_sum( self, local )

    # ...
    def axpy( self, a, x, y ):
        """
        Increment the owned values of y with those of the a-scaled vector x.
        The ghost regions of y are no longer in sync afterwards.

        """
        assert isinstance( x, StencilVector )
        assert isinstance( y, StencilVector )

        idx = self._interior_index
        y._data[idx] += a * x._data[idx]
        y._sync = False

    # ...
    def is_conformant( self, other ):
        """
        True if other has the same global shape, local block, ghost width
        and dtype as self.

        """
        if other is self:
            return True
        if not isinstance( other, StencilVectorSpace ):
            return False
        return (self._npts   == other.npts   and
                self._starts == other.starts and
                self._ends   == other.ends   and
                self._pads   == other.pads   and
                self._dtype  == other.dtype)

    #--------------------------------------
    # Other properties/methods
    #--------------------------------------
    @property
    def parallel( self ):
        return self._parallel

    # ...
    @property
    def cart( self ):
        return self._cart

    # ...
    @property
    def comm( self ):
        return self._cart.comm_cart if self._parallel else None

    # ...
    @property
    def npts( self ):
        return self._npts

    # ...
    @property
    def local_npts( self ):
        return self._local_npts

    # ...
    @property
    def starts( self ):
        return self._starts

    # ...
    @property
    def ends( self ):
        return self._ends

    # ...
    @property
    def pads( self ):
        return self._pads

    # ...
    @property
    def periods( self ):
        return self._periods

    # ...
    @property
    def ndim( self ):
        return self._ndim

    # ...
    @property
    def shape( self ):
        """ Shape of the local array, ghost regions included. """
        return tuple( n+2*p for n,p in zip( self._local_npts, self._pads ) )

    # ...
    @property
    def interior_index( self ):
        """ Tuple of slices selecting the owned values in the local array. """
        return self._interior_index

    # ...
    def __repr__( self ):
        return ('StencilVectorSpace(npts={}, starts={}, ends={}, pads={}, dtype={})'
                .format( self._npts, self._starts, self._ends, self._pads, self._dtype ))

#===============================================================================
class StencilVector( Vector ):
    """
    Vector in n-dimensional stencil format: the local block of a distributed
    scalar field, surrounded by ghost regions.

    Parameters
    ----------
    V : krylovgrid.linalg.stencil.StencilVectorSpace
        Space to which the new vector belongs.

    """
    def __init__( self, V ):

        assert isinstance( V, StencilVectorSpace )

        self._data  = np.zeros( V.shape, dtype=V.dtype )
        self._space = V
        self._sync  = False

    #--------------------------------------
    # Abstract interface
    #--------------------------------------
    @property
    def space( self ):
        return self._space

    #...
    @property
    def dtype( self ):
        return self.space.dtype

    #...
    def copy( self, out=None ):
        if out is self:
            return self
        if out is None:
            out = StencilVector( self._space )
        else:
            assert isinstance( out, StencilVector )
            check_conformant( self, out )
        out._data[...] = self._data
        out._sync      = self._sync
        return out

    #...
    def set_zero( self ):
        self._data[self._space.interior_index] = 0
        self._sync = False

    #...
    def max_abs_local( self ):
        interior = self.interior
        return float( np.max( np.abs( interior ) ) ) if interior.size else 0.0

    #...
    def __neg__( self ):
        w = self.copy()
        w *= -1
        return w

    #...
    def __mul__( self, a ):
        w = self.copy()
        w *= a
        return w

    #...
    def __add__( self, v ):
        w = self.copy()
        w += v
        return w

    #...
    def __sub__( self, v ):
        w = self.copy()
        w -= v
        return w

    #...
    def __imul__( self, a ):
        self._data[self._space.interior_index] *= a
        self._sync = False
        return self

    #...
    def __iadd__( self, v ):
        assert isinstance( v, StencilVector )
        check_conformant( self, v )
        idx = self._space.interior_index
        self._data[idx] += v._data[idx]
        self._sync = False
        return self

    #...
    def __isub__( self, v ):
        assert isinstance( v, StencilVector )
        check_conformant( self, v )
        idx = self._space.interior_index
        self._data[idx] -= v._data[idx]
        self._sync = False
        return self

    #--------------------------------------
    # Other properties/methods
    #--------------------------------------
    @property
    def starts(self):
        return self._space.starts

    # ...
    @property
    def ends(self):
        return self._space.ends

    # ...
    @property
    def pads(self):
        return self._space.pads

    # ...
    @property
    def interior( self ):
        """ View of the owned values (no ghost regions). """
        return self._data[self._space.interior_index]

    # ...
    def __str__( self ):
        return (f"StencilVector(starts={self.starts}, ends={self.ends}, pads={self.pads},"
                f" sync={self._sync})\n{self._data}")

    # ...
    def toarray( self, *, order='C' ):
        """
        Return a numpy 1D array with the owned values of the whole field.
        In the parallel case the blocks of all processes are gathered, so
        this is a collective operation.

        Parameters
        ----------
        order : {'C', 'F'}
            Ordering of the grid values in the array: row-major ('C') or
            column-major ('F').

        Returns
        -------
        array : numpy.ndarray
            Copy of the owned values of the whole grid.

        """
        if self._space.parallel:
            return self._toarray_parallel( order=order )

        return self.toarray_local( order=order )

    # ...
    def toarray_local( self , *, order='C'):
        """ Owned values of the local block as a 1D array. """
        return self.interior.flatten( order=order )

    # ...
    def _toarray_parallel( self, order='C' ):
        a         = np.zeros( self._space.npts, dtype=self.dtype )
        idx_to    = tuple( slice(s,e+1) for s,e in zip(self.starts,self.ends) )
        a[idx_to] = self.interior
        self._space.comm.Allreduce( MPI.IN_PLACE, a, op=MPI.SUM )
        return a.flatten( order=order )

    # ...
    def __getitem__(self, key):
        index = self._getindex( key )
        return self._data[index]

    # ...
    def __setitem__(self, key, value):
        index = self._getindex( key )
        self._data[index] = value
        self._sync = False

    # ...
    @property
    def ghost_regions_in_sync( self ):
        return self._sync

    # ...
    # NOTE: this property must be set collectively
    @ghost_regions_in_sync.setter
    def ghost_regions_in_sync( self, value ):
        assert isinstance( value, bool )
        self._sync = value

    # ...
    def update_ghost_regions( self ):
        """
        Fill the ghost layers with the values of the neighboring blocks (periodic
        wrap included). Ghost layers at the faces of a non-periodic domain are
        left untouched in parallel and set to zero in serial; the boundary
        conditions overwrite them anyway. Collective in the parallel case.

        """
        if self._space.parallel:
            self._space._synchronizer.update_ghost_regions( self._data )
        else:
            self._update_ghost_regions_serial()

        self._sync = True

    # ...
    def _update_ghost_regions_serial( self ):

        for axis, (p, periodic) in enumerate( zip( self._space.pads, self._space.periods ) ):

            if p == 0:
                continue

            # View with 'axis' first: u[:p] and u[-p:] are the ghost layers
            u = np.moveaxis( self._data, axis, 0 )

            if periodic:
                u[-p:] = u[p:2*p]
                u[:p]  = u[-2*p:-p]
            else:
                u[:p]  = 0
                u[-p:] = 0

    #--------------------------------------
    # Private methods
    #--------------------------------------
    def _getindex( self, key ):

        if not isinstance( key, tuple ):
            key = (key,)
        if len( key ) != self._space.ndim:
            raise IndexError( 'Expected {} indices, got {}'.format( self._space.ndim, len( key ) ) )
        index = []
        for (i,s,p) in zip(key, self.starts, self.pads):
            if isinstance(i, slice):
                start = None if i.start is None else i.start - s + p
                stop  = None if i.stop  is None else i.stop  - s + p
                l = slice(start, stop, i.step)
            else:
                l = i - s + p
            index.append(l)
        return tuple(index)
