#---------------------------------------------------------------------------#
# This file is part of KRYLOVGRID which is released under MIT License. See  #
# the LICENSE file for full license details.                                #
#---------------------------------------------------------------------------#
import numpy as np

__all__ = ('Geometry',)

#==============================================================================
class Geometry:
    """
    Uniform cell-centered Cartesian grid over a rectangular domain.

    Cell i along axis d covers [lo_d + i*h_d, lo_d + (i+1)*h_d], with
    h_d = (hi_d - lo_d) / ncells_d, and its value lives at the cell center.

    Parameters
    ----------
    bounds : list of (float, float)
        Lower and upper bound of the domain along each direction.

    ncells : list of int
        Number of cells along each direction.

    periodic : list of bool
        Periodicity along each direction (default: no periodic direction).

    """
    def __init__(self, bounds, ncells, periodic=None):

        if periodic is None:
            periodic = [False] * len(ncells)

        if not len(bounds) == len(ncells) == len(periodic):
            raise ValueError('bounds, ncells and periodic must have one entry per direction')
        if any(int(n) < 1 for n in ncells):
            raise ValueError(f'Number of cells must be positive, got {tuple(ncells)}')
        if any(lo >= hi for lo, hi in bounds):
            raise ValueError(f'Invalid domain bounds {tuple(bounds)}')

        self._bounds   = tuple((float(lo), float(hi)) for lo, hi in bounds)
        self._ncells   = tuple(int(n) for n in ncells)
        self._periodic = tuple(bool(P) for P in periodic)
        self._spacing  = tuple((hi - lo) / n for (lo, hi), n in zip(self._bounds, self._ncells))

    #--------------------------------------------------------------------------
    @property
    def ndim(self):
        return len(self._ncells)

    @property
    def bounds(self):
        return self._bounds

    @property
    def ncells(self):
        return self._ncells

    @property
    def periodic(self):
        return self._periodic

    @property
    def spacing(self):
        """ Cell size along each direction. """
        return self._spacing

    #--------------------------------------------------------------------------
    def cell_centers(self, starts=None, ends=None):
        """
        1D arrays of cell-center coordinates along each direction, for the
        cells with global indices starts[d] <= i <= ends[d].

        """
        if starts is None:
            starts = (0,) * self.ndim
        if ends is None:
            ends = tuple(n - 1 for n in self._ncells)

        return [lo + (np.arange(s, e + 1) + 0.5) * h
                for (lo, _), h, s, e in zip(self._bounds, self._spacing, starts, ends)]

    def meshgrid(self, starts=None, ends=None):
        """ Cell-center coordinates as N-dimensional arrays ('ij' indexing). """
        return np.meshgrid(*self.cell_centers(starts, ends), indexing='ij')

    def coarsen(self, factor=2):
        """
        Geometry of the same domain with ncells/factor cells along each
        direction.

        """
        if any(n % factor for n in self._ncells):
            raise ValueError(f'Cannot coarsen {self._ncells} cells by a factor {factor}')

        ncells = [n // factor for n in self._ncells]
        return Geometry(self._bounds, ncells, self._periodic)

    def __repr__(self):
        return f'Geometry(bounds={self._bounds}, ncells={self._ncells}, periodic={self._periodic})'
