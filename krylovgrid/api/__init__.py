#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
from krylovgrid.api import settings
from krylovgrid.api import discretization
from krylovgrid.api import poisson
