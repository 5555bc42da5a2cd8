# Copyright (c) 2017, Joseph deBlaquiere <jadeblaquiere@yahoo.com>
# All rights reserved
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# * Redistributions of source code must retain the above copyright notice, this
#   list of conditions and the following disclaimer.
#
# * Redistributions in binary form must reproduce the above copyright notice,
#   this list of conditions and the following disclaimer in the documentation
#   and/or other materials provided with the distribution.
#
# * Neither the name of ecpy nor the names of its
#   contributors may be used to endorse or promote products derived from
#   this software without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

DEPTH = 32


class TreeAddress (object):
    """TreeAddress names a node in a complete binary tree of depth 32 as a
    (length, path) pair. The path holds one bit per edge taken from the root,
    most recent edge in bit 0 (0 = left, 1 = right), so the children of path
    w are (w << 1) and (w << 1) | 1. Bits at positions >= length are always
    zero.

    Nodes are ordered by a preorder walk (node, left subtree, right subtree),
    which is the order in which a ratchet visits them. TreeAddress is an
    immutable value; navigation returns new instances.
    """
    def __init__(self, length=0, path=0):
        if (length != int(length)) or (length < 0) or (length > DEPTH):
            raise ValueError('Invalid Input: length must be in 0..%d' % DEPTH)
        if (path != int(path)) or (path < 0) or (path >= (1 << DEPTH)):
            raise ValueError('Invalid Input: path must be a %d bit unsigned '
                             'integer' % DEPTH)
        self._length = int(length)
        # canonical form: drop bits beyond the length of the path
        self._path = int(path) & ((1 << self._length) - 1)

    @staticmethod
    def root():
        return TreeAddress(0, 0)

    def length(self):
        return self._length

    def path(self):
        return self._path

    def address(self):
        """address returns position in tree as a tuple (length, path)"""
        return (self._length, self._path)

    def isLeaf(self):
        return self._length == DEPTH

    def isRoot(self):
        return self._length == 0

    def left(self):
        if self.isLeaf():
            raise ValueError('Leaf node %s has no children' % str(self))
        return TreeAddress(self._length + 1, self._path << 1)

    def right(self):
        if self.isLeaf():
            raise ValueError('Leaf node %s has no children' % str(self))
        return TreeAddress(self._length + 1, (self._path << 1) | 1)

    def parent(self):
        if self.isRoot():
            raise ValueError('Root node has no parent')
        return TreeAddress(self._length - 1, self._path >> 1)

    def isRightChild(self):
        return (not self.isRoot()) and ((self._path & 1) == 1)

    def ancestors(self):
        """ancestors returns the list of addresses from the root down to (and
        including) this node
        """
        chain = []
        node = self
        while not node.isRoot():
            chain.append(node)
            node = node.parent()
        chain.append(node)
        chain.reverse()
        return chain

    def inSubtree(self, other):
        """inSubtree is True if self is other or a descendant of other"""
        if other.isRoot():
            return True
        if self._length < other._length:
            return False
        return (self._path >> (self._length - other._length)) == other._path

    def successor(self):
        """successor returns the next node of the preorder walk, or None if
        self is the last node (MAX)
        """
        if self == MAX:
            return None
        if not self.isLeaf():
            return self.left()
        # climb out of every subtree we finished as a right child, then
        # continue in the first right subtree not yet visited
        node = self
        while node.isRightChild():
            node = node.parent()
        return node.parent().right()

    def toNumbering(self):
        """toNumbering maps the node to an integer in [0, 2**33 - 2]. A left
        edge counts 1 and a right edge taken from depth d counts 2**(32 - d),
        the size of the skipped left subtree plus one. The result is the
        position of the node in the preorder walk.
        """
        number = 0
        for depth in range(0, self._length):
            bit = (self._path >> (self._length - depth - 1)) & 1
            if bit == 0:
                number += 1
            else:
                number += 1 << (DEPTH - depth)
        return number

    @staticmethod
    def fromNumbering(number):
        if (number != int(number)) or (number < 0) or (number > NODE_COUNT - 1):
            raise ValueError('Invalid Input: number must be in 0..%d' %
                             (NODE_COUNT - 1))
        number = int(number)
        node = TreeAddress.root()
        weight = 1 << DEPTH
        while number > 0:
            if number >= weight:
                node = node.right()
                number -= weight
            else:
                node = node.left()
                number -= 1
            weight >>= 1
        return node

    def __eq__(self, other):
        if not isinstance(other, TreeAddress):
            return NotImplemented
        return self.address() == other.address()

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash(self.address())

    def __repr__(self):
        return 'TreeAddress(%d, 0x%X)' % (self._length, self._path)

    def __str__(self):
        return 'Node %d @%s' % (self.toNumbering(), str(self.address()))


NODE_COUNT = (1 << (DEPTH + 1)) - 1
ROOT = TreeAddress(0, 0)
MAX = TreeAddress(DEPTH, (1 << DEPTH) - 1)
