#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
__all__ = ['blocking_data_exchanger', 'cart', 'partition']

from krylovgrid.ddm import partition
from krylovgrid.ddm import cart
from krylovgrid.ddm import blocking_data_exchanger
