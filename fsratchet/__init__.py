__version__ = '0.1.0'

from fsratchet.treeaddress import TreeAddress, ROOT, MAX, DEPTH
from fsratchet.ratchet import PublicState, PrivateState, Ciphertext, \
    RatchetError, Exhausted, generateKeypair
