#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
__all__ = ('KRYLOVGRID_GMRES_DEFAULTS', 'KRYLOVGRID_MG_DEFAULTS', 'KRYLOVGRID_PRECONDITIONERS')

#==============================================================================

# ... default options of the restarted GMRES solver
KRYLOVGRID_GMRES_DEFAULTS = {'restart'      : 30,
                             'maxiter'      : 2000,
                             'max_restarts' : None,
                             'tol_abs'      : 0.0,
                             'verbose'      : 0}

# ... default options of the multigrid preconditioner
KRYLOVGRID_MG_DEFAULTS = {'nu1'           : 2,
                          'nu2'           : 2,
                          'max_levels'    : None,
                          'coarse_sweeps' : 50}

# ... preconditioners available by name
KRYLOVGRID_PRECONDITIONERS = ('identity', 'jacobi', 'mg')
