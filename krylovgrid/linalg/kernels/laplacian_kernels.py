#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
import numpy as np

#========================================================================================================

#Implementation of the finite-difference Laplacian kernels

def stencil_apply(u, out, index, inv_h2, alpha, beta):
    """
        kernel for computing out = alpha*u - beta*Lap(u) on the owned cells

        Parameters
        ----------
            u : nd array
                Local data with ghost regions of width >= 1, already filled.

            out : nd array
                Local data with the same shape as u; only the owned cells are written.

            index : tuple of slice
                Slices selecting the owned cells in u and out.

            inv_h2 : sequence of float
                Inverse of the squared cell size along each direction.

            alpha, beta : scalar
                Coefficients of the identity and Laplacian terms.
    """
    uc  = u[index]
    acc = alpha * uc

    for d, c in enumerate(inv_h2):
        idx_lo = index[:d] + (slice(index[d].start-1, index[d].stop-1),) + index[d+1:]
        idx_hi = index[:d] + (slice(index[d].start+1, index[d].stop+1),) + index[d+1:]
        acc = acc + (beta * c) * (2*uc - u[idx_lo] - u[idx_hi])

    out[index] = acc

#========================================================================================================
def stencil_diagonal(out, index, inv_h2, alpha, beta, coeffs):
    """
        kernel for computing the diagonal of alpha*I - beta*Lap on the owned cells

        Parameters
        ----------
            out : nd array
                Local data; only the owned cells are written.

            index : tuple of slice
                Slices selecting the owned cells in out.

            inv_h2 : sequence of float
                Inverse of the squared cell size along each direction.

            alpha, beta : scalar
                Coefficients of the identity and Laplacian terms.

            coeffs : sequence of 1d array
                Diagonal of the 1D second-difference matrix along each direction,
                restricted to the owned cells (2 inside the domain, 2 minus the
                reflection coefficient of the boundary condition next to a face).
    """
    ndim = len(index)
    diag = np.full(out[index].shape, alpha, dtype=float)

    for d, (c, cd) in enumerate(zip(inv_h2, coeffs)):
        shape    = [1] * ndim
        shape[d] = -1
        diag = diag + (beta * c) * np.reshape(cd, shape)

    out[index] = diag

#========================================================================================================
def periodic_wrap(data, axis, p):
    """
        kernel for filling the ghost regions of width p along a periodic axis
        with the values on the opposite side of the local array
    """
    if p == 0:
        return

    ndim      = data.ndim
    idx_front = [slice(None)]*axis
    idx_back  = [slice(None)]*(ndim-axis-1)

    idx_from = tuple( idx_front + [slice( p, 2*p)] + idx_back )
    idx_to   = tuple( idx_front + [slice(-p,None)] + idx_back )
    data[idx_to] = data[idx_from]

    idx_from = tuple( idx_front + [slice(-2*p,-p)] + idx_back )
    idx_to   = tuple( idx_front + [slice(None, p)] + idx_back )
    data[idx_to] = data[idx_from]
