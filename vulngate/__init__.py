from vulngate.__version__ import __version__
