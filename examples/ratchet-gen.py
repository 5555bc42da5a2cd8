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

from fsratchet.ratchet import generateKeypair, DEFAULT_QBITS, DEFAULT_RBITS
from argparse import ArgumentParser
import base64
import logging
import pypbc


def pem(label, der):
    return ('-----BEGIN ' + label + '-----\n' +
            base64.b64encode(der).decode() + '\n' +
            '-----END ' + label + '-----\n')


desc = ('ratchet-gen generates a key pair for forward secure ratcheting '
        'encryption. Both keys start at the root of the key tree. Output is '
        'DER encoded and PEM-wrapped')

parser = ArgumentParser(description=desc)
parser.add_argument('pubkey', help='file path to write the public key to')
parser.add_argument('privkey', help='file path to write the private key to')
parser.add_argument('--qbits', type=int, default=DEFAULT_QBITS, help='bit size of the pairing field')
parser.add_argument('--rbits', type=int, default=DEFAULT_RBITS, help='bit size of the pairing group order')
parser.add_argument('-v', '--verbose', action='store_true', help='log progress to stderr')
clargs = parser.parse_args()

if clargs.verbose:
    logging.basicConfig(level=logging.DEBUG)

pypbc.set_point_format_compressed()

pubstate, privstate = generateKeypair(clargs.qbits, clargs.rbits)

with open(clargs.pubkey, 'w') as keyfile:
    keyfile.write(pem('RATCHET PUBLIC KEY', pubstate.toDER()))
with open(clargs.privkey, 'w') as keyfile:
    keyfile.write(pem('RATCHET PRIVATE KEY', privstate.toDER()))
