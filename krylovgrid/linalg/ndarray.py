#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
import numpy as np

from krylovgrid.linalg.basic import VectorSpace, Vector, LinearOperator, ShapeMismatch, check_conformant

__all__ = ('NdarrayVectorSpace', 'NdarrayVector', 'NdarrayLinearOperator')

class NdarrayVectorSpace( VectorSpace ):
    """
    Serial space of real 1D ndarrays, used to run the Krylov solvers on
    small dense problems.
    """
    def __init__( self, dimension, dtype=float ):
        assert np.isscalar(dimension)
        assert dimension >= 1
        self._dimension = int(dimension)
        self._dtype = np.dtype(dtype)

    @property
    def dimension( self ):
        return self._dimension

    @property
    def dtype( self ):
        return self._dtype

    def zeros( self ):
        return NdarrayVector(space=self)

    def inner( self, x, y ):
        assert isinstance(x, NdarrayVector)
        assert isinstance(y, NdarrayVector)
        return float(np.dot(x.data, y.data))

    def axpy( self, a, x, y ):
        assert isinstance(x, NdarrayVector)
        assert isinstance(y, NdarrayVector)
        y.data[:] += a * x.data

    def __repr__( self ):
        return f'NdarrayVectorSpace(dimension={self._dimension}, dtype={self._dtype})'


class NdarrayVector( Vector ):
    """
    Vector stored as a numpy 1D array.

    Parameters
    ----------
    space : NdarrayVectorSpace
        Space to which the new vector belongs.

    data : numpy.ndarray | scalar | None
        Initial values (array of the right shape and dtype, or fill value).
        If None the vector is zero.

    """
    def __init__( self, space, data=None ):

        assert isinstance(space, NdarrayVectorSpace)
        self._space = space

        if data is None:
            self._data = np.zeros(space.dimension, dtype=space.dtype)
        elif isinstance(data, np.ndarray):
            if data.shape != (space.dimension,) or data.dtype != space.dtype:
                raise ValueError(f"Expected an array of shape {(space.dimension,)} and dtype {space.dtype}")
            self._data = data
        elif np.isscalar(data):
            self._data = np.full(shape=space.dimension, fill_value=data, dtype=space.dtype)
        else:
            raise ValueError(data)

    @property
    def data( self ):
        return self._data

    @property
    def space( self ):
        return self._space

    def copy( self, out=None ):
        if out is self:
            return self
        if out is None:
            return NdarrayVector(self._space, np.copy(self._data))
        assert isinstance(out, NdarrayVector)
        check_conformant(self, out)
        out._data[:] = self._data
        return out

    def set_zero( self ):
        self._data[:] = 0

    def max_abs_local( self ):
        return float( np.max( np.abs( self._data ) ) ) if self._data.size else 0.0

    def toarray( self, **kwargs ):
        return self._data.copy()

    def __mul__( self, c ):
        assert np.isscalar(c)
        return NdarrayVector(space=self._space, data=(self._data * c).astype(self.dtype, copy=False))

    def __imul__( self, c ):
        self._data *= c
        return self

    def __add__( self, v ):
        assert isinstance(v, NdarrayVector)
        check_conformant(self, v)
        return NdarrayVector(self._space, self._data + v.data)

    def __iadd__( self, v ):
        assert isinstance(v, NdarrayVector)
        check_conformant(self, v)
        self._data += v.data
        return self

    def __neg__( self ):
        return self * (-1)

    def __sub__(self, v ):
        assert isinstance(v, NdarrayVector)
        check_conformant(self, v)
        return NdarrayVector(self._space, self._data - v.data)

    def __isub__(self, v ):
        assert isinstance(v, NdarrayVector)
        check_conformant(self, v)
        self._data -= v.data
        return self


class NdarrayLinearOperator( LinearOperator ):
    """
    Linear operator defined by a dense numpy matrix.

    Parameters
    ----------
    domain : NdarrayVectorSpace
        Domain of the operator.

    codomain : NdarrayVectorSpace
        Codomain of the operator (default: same as domain).

    matrix : numpy.ndarray
        Dense matrix of shape (codomain.dimension, domain.dimension).

    """
    def __init__( self, domain, codomain=None, *, matrix ):

        assert isinstance(domain, NdarrayVectorSpace)
        if codomain is None:
            codomain = domain
        assert isinstance(codomain, NdarrayVectorSpace)
        assert np.shape(matrix) == (codomain.dimension, domain.dimension)

        self._domain   = domain
        self._codomain = codomain
        self._matrix   = np.asarray(matrix)

    #-------------------------------------
    # Deferred methods
    #-------------------------------------
    @property
    def domain( self ):
        return self._domain

    @property
    def codomain( self ):
        return self._codomain

    @property
    def matrix( self ):
        return self._matrix

    @property
    def dtype( self ):
        return self._matrix.dtype

    def toarray(self):
        return self._matrix

    def tosparse(self):
        from scipy.sparse import csr_array
        return csr_array(self._matrix)

    def dot( self, v, out=None ):
        assert isinstance(v, NdarrayVector)
        if not self._domain.is_conformant(v.space):
            raise ShapeMismatch(f"Vector does not belong to {self._domain}")
        if out is not None:
            assert isinstance(out, NdarrayVector)
            out.data[:] = np.dot(self._matrix, v.data)
            return out
        else:
            return NdarrayVector(space=self._codomain, data=np.dot(self._matrix, v.data).astype(self._codomain.dtype, copy=False))
