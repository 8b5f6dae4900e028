from .version import IS_RELEASE_BUILD, __version__

DEFAULT_ADMINDIR = "/var/lib/dpkg"
LIBDIR = "/usr/lib/dpkg"
LOCALLIBDIR = "/usr/local/lib/dpkg"
METHODSDIR = "methods"
DPKG = "dpkg"
