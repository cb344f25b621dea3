#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
"""
Abstract interfaces seen by the Krylov solvers: a vector space with a global
inner product, its vectors, and linear operators between such spaces.

"""
from abc import ABC, abstractmethod

import numpy as np

__all__ = ('ShapeMismatch', 'check_conformant', 'VectorSpace', 'Vector',
           'LinearOperator', 'IdentityOperator', 'InverseLinearOperator')

#===============================================================================
class ShapeMismatch(ValueError):
    """
    Raised when the operands of a vector-space operation are not conformant,
    i.e. they do not share the same partition and ghost width.

    """

def check_conformant(*vectors):
    """
    Verify that all vectors belong to conformant spaces.

    Raises
    ------
    ShapeMismatch
        If any vector is not conformant with the first one.

    """
    assert len(vectors) > 0
    V = vectors[0].space
    for v in vectors[1:]:
        if not V.is_conformant(v.space):
            raise ShapeMismatch(f'Operands are not conformant: {V} and {v.space}')

#===============================================================================
class VectorSpace(ABC):
    """
    Space of real vectors of finite dimension, possibly distributed over the
    processes of a communicator, equipped with the Euclidean inner product.

    """
    @property
    @abstractmethod
    def dimension(self):
        """ Global number of components of a vector. """

    @property
    @abstractmethod
    def dtype(self):
        """ Numpy type of the components. """

    @abstractmethod
    def zeros(self):
        """ New vector of the space with all components set to zero. """

    @abstractmethod
    def inner(self, x, y):
        """
        Inner product of two vectors of the space. In a distributed space this
        is a global reduction: every process obtains the same value.

        """

    @abstractmethod
    def axpy(self, a, x, y):
        """
        In-place update y <- y + a*x of the owned components of y.

        Parameters
        ----------
        a : scalar
            Coefficient of x.

        x : Vector
            Increment, left unchanged.

        y : Vector
            Vector updated in place.

        """

    @property
    def comm(self):
        """ Communicator of the processes sharing the space (None if serial). """
        return None

    def is_conformant(self, other):
        """ True if vectors of self and other can be combined. """
        return self is other

#===============================================================================
class Vector(ABC):
    """
    Element of a VectorSpace. Arithmetic operators act on the owned
    components only.

    """
    @property
    def shape(self):
        return (self.space.dimension, )

    @property
    def dtype(self):
        return self.space.dtype

    def inner(self, other):
        """ Global inner product with a conformant vector. """
        assert isinstance(other, Vector)
        check_conformant(self, other)
        return self.space.inner(self, other)

    def mul_iadd(self, a, x):
        """
        In-place update self <- self + a*x, x being a conformant vector.

        """
        check_conformant(self, x)
        self.space.axpy(a, x, self)

    #-------------------------------------
    # Deferred methods
    #-------------------------------------
    @property
    @abstractmethod
    def space(self):
        pass

    @abstractmethod
    def toarray(self, **kwargs):
        """ Owned components as a 1D numpy array. """

    @abstractmethod
    def copy(self, out=None):
        """ Copy of self, written into out if given (x.copy(out=x) is x). """

    @abstractmethod
    def set_zero(self):
        """ Set all owned components to zero. """

    @abstractmethod
    def max_abs_local(self):
        """ Largest absolute value of the owned components of this process (0 if none). """

    @abstractmethod
    def __neg__(self):
        pass

    @abstractmethod
    def __mul__(self, a):
        pass

    @abstractmethod
    def __add__(self, v):
        pass

    @abstractmethod
    def __sub__(self, v):
        pass

    @abstractmethod
    def __imul__(self, a):
        pass

    @abstractmethod
    def __iadd__(self, v):
        pass

    @abstractmethod
    def __isub__(self, v):
        pass

    #-------------------------------------
    # Methods with default implementation
    #-------------------------------------
    def __rmul__(self, a):
        return self * a

    def __truediv__(self, a):
        return self * (1.0 / a)

    def __itruediv__(self, a):
        self *= 1.0 / a
        return self

#===============================================================================
class LinearOperator(ABC):
    """
    Linear map from the vectors of a VectorSpace (domain) to those of another
    one (codomain).

    """
    @property
    def shape(self):
        """ (codomain dimension, domain dimension) """
        return (self.codomain.dimension, self.domain.dimension)

    #-------------------------------------
    # Deferred methods
    #-------------------------------------
    @property
    @abstractmethod
    def domain(self):
        pass

    @property
    @abstractmethod
    def codomain(self):
        pass

    @property
    @abstractmethod
    def dtype(self):
        pass

    @abstractmethod
    def tosparse(self):
        """ Global matrix as a scipy.sparse matrix. """

    @abstractmethod
    def toarray(self):
        """ Global matrix as a dense numpy array. """

    @abstractmethod
    def dot(self, v, out=None):
        """ Return self(v), written into out if given. """

    #-------------------------------------
    # Methods with default implementation
    #-------------------------------------
    def apply(self, out, v):
        """ Compute out = self(v) and return out. """
        return self.dot(v, out=out)

    def __matmul__(self, v):
        assert isinstance(v, Vector)
        return self.dot(v)

#===============================================================================
class IdentityOperator(LinearOperator):
    """ Identity map of a VectorSpace. """

    def __init__(self, domain, codomain=None):

        assert isinstance(domain, VectorSpace)
        if codomain is not None:
            assert isinstance(codomain, VectorSpace)
            assert domain.is_conformant(codomain)

        self._space = domain

    @property
    def domain(self):
        return self._space

    @property
    def codomain(self):
        return self._space

    @property
    def dtype(self):
        return self._space.dtype

    def toarray(self):
        return np.eye(self._space.dimension, dtype=self.dtype)

    def tosparse(self):
        from scipy.sparse import eye
        return eye(self._space.dimension, dtype=self.dtype, format='csr')

    def dot(self, v, out=None):
        assert isinstance(v, Vector)
        if not self._space.is_conformant(v.space):
            raise ShapeMismatch(f"Vector does not belong to {self._space}")
        if out is None:
            return v.copy()
        assert isinstance(out, Vector)
        check_conformant(out, v)
        return v.copy(out=out)

#===============================================================================
class InverseLinearOperator(LinearOperator):
    """
    Approximate inverse of a square LinearOperator A, evaluated by an
    iterative solver: x = self.dot(b) is the solution of A x = b.

    Parameters
    ----------
    A : LinearOperator
        Operator of the linear system.

    **kwargs
        Solver options, stored in a dictionary accessible through
        get_options() and modified with set_options().

    """
    def __init__(self, A, **kwargs):

        assert isinstance(A, LinearOperator)
        assert A.domain.is_conformant(A.codomain)

        # Options are validated against the spaces of A
        self._A = A
        self._check_options(**kwargs)

        self._options = kwargs
        self._info    = None

    @property
    def space(self):
        return self._A.domain

    @property
    def domain(self):
        return self._A.codomain

    @property
    def codomain(self):
        return self._A.domain

    @property
    def dtype(self):
        return None

    @property
    def linop(self):
        """ The operator A being inverted. """
        return self._A

    @property
    def options(self):
        return self._options

    def toarray(self):
        raise NotImplementedError(f'{type(self).__name__} cannot be assembled into a matrix')

    def tosparse(self):
        raise NotImplementedError(f'{type(self).__name__} cannot be assembled into a matrix')

    def get_info(self):
        """ Convergence information of the last solve (None before the first one). """
        return self._info

    def get_options(self):
        return self._options.copy()

    def set_options(self, **kwargs):
        self._check_options(**kwargs)
        self._options.update(kwargs)

    @abstractmethod
    def _check_options(self, **kwargs):
        pass

    @abstractmethod
    def solve(self, b, out=None):
        pass
