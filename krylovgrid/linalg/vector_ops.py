#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
"""
Vector-space operations used by the Krylov solvers.

These functions only rely on the abstract Vector interface, hence they work
for distributed StencilVector objects as well as for serial NdarrayVector
objects. Every operation acts on the owned values only and checks that its
operands are conformant, raising ShapeMismatch otherwise.

"""
import math

from krylovgrid.linalg.basic import Vector, check_conformant

__all__ = ('global_sum', 'global_max', 'zero', 'copy', 'axpy', 'lin_comb', 'scale', 'dot', 'norm2')

# Smallest sum of squares whose accuracy is not affected by underflow
_SQUARES_MIN = 1e-280

#===============================================================================
def global_sum(space, value):
    """
    Sum a local partial value over all processes sharing the vector space.

    The partial sums are gathered on every process and combined with
    math.fsum in rank order; the result is correctly rounded, hence
    bit-identical on all processes.

    Parameters
    ----------
    space : krylovgrid.linalg.basic.VectorSpace
        Space whose communicator (None if serial) defines the processes.

    value : float
        Local contribution.

    Returns
    -------
    float
        The global sum.

    """
    comm = space.comm
    if comm is None:
        return float(value)

    partials = comm.allgather(float(value))
    return math.fsum(partials)

#===============================================================================
def global_max(space, value):
    """
    Maximum of a local value over all processes sharing the vector space.
    The result is NaN if any contribution is NaN.

    """
    comm = space.comm
    if comm is None:
        return float(value)

    values = comm.allgather(float(value))
    if any(math.isnan(v) for v in values):
        return math.nan
    return max(values)

#===============================================================================
def zero(field):
    """ Set the owned values of field to zero. """
    assert isinstance(field, Vector)
    field.set_zero()

def copy(dst, src):
    """ dst <- src. """
    assert isinstance(src, Vector)
    check_conformant(dst, src)
    src.copy(out=dst)

def axpy(dst, src, a):
    """ dst <- dst + a * src. """
    check_conformant(dst, src)
    dst.mul_iadd(a, src)

def lin_comb(dst, a, x, b, y):
    """
    dst <- a * x + b * y.

    dst may be the same object as x and/or y.

    """
    check_conformant(dst, x, y)

    if dst is x and dst is y:
        dst *= (a + b)
    elif dst is x:
        dst *= a
        dst.mul_iadd(b, y)
    elif dst is y:
        dst *= b
        dst.mul_iadd(a, x)
    else:
        x.copy(out=dst)
        dst *= a
        dst.mul_iadd(b, y)

def scale(field, s):
    """ field <- s * field. """
    assert isinstance(field, Vector)
    field *= s

def dot(x, y):
    """ Global inner product of x and y (identical on all processes). """
    return x.inner(y)

def norm2(x):
    """
    Global Euclidean norm of x, never negative.

    The sum of squares is used directly unless it overflows or gets close to
    the underflow range. In that case x is first rescaled by a power of two
    close to its largest entry, so that vectors with entries of order 1e-200
    or 1e200 still get an accurate (and nonzero) norm.

    """
    s = dot(x, x)
    if math.isfinite(s) and s >= _SQUARES_MIN:
        return math.sqrt(s)

    amax = global_max(x.space, x.max_abs_local())
    if amax == 0.0 or not math.isfinite(amax):
        return amax

    # Exact scaling by 2**(-e), split in two factors that never overflow
    e = math.frexp(amax)[1]
    y = x * math.ldexp(1.0, -(e // 2))
    y *= math.ldexp(1.0, e // 2 - e)

    try:
        return math.ldexp(math.sqrt(max(dot(y, y), 0.0)), e)
    except OverflowError:
        return math.inf
