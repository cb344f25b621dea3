#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
import numpy as np

#========================================================================================================

#Implementation of the cell-centered grid transfer kernels

def restrict_average(fine, coarse):
    """
        kernel for computing coarse = average of the 2**ndim children of each coarse cell

        Parameters
        ----------
            fine : nd array
                Values on the owned fine cells, even extent along each direction.

            coarse : nd array
                Values on the owned coarse cells (half the extent of fine).
    """
    ndim  = fine.ndim
    shape = []
    for n in coarse.shape:
        shape += [n, 2]

    coarse[...] = fine.reshape(shape).mean(axis=tuple(range(1, 2*ndim, 2)))

#========================================================================================================
def prolongate_add(coarse, fine):
    """
        kernel for computing fine += piecewise-constant injection of coarse

        Parameters
        ----------
            coarse : nd array
                Values on the owned coarse cells.

            fine : nd array
                Values on the owned fine cells (twice the extent of coarse).
    """
    c = coarse
    for d in range(coarse.ndim):
        c = np.repeat(c, 2, axis=d)

    fine += c
