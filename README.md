# geph

Reusable pieces of a proxy network made of clients, bridges, exits and a
central binder, packaged as a plain Python library.

Install it with pip. The `test` extra adds pytest and responses for running
the test suite.

## Modules

- `geph.china`: `ChinaLookup` answers whether a host name (or any of its
  parent domains) or an IPv4 address belongs to mainland China. Build it from
  a collection of domains and networks, or with `ChinaLookup.from_text`
  from a newline-separated domain list and a whitespace-separated CIDR list.
  Lookups use `is_chinese_host` and `is_chinese_ip`.
- `geph.lists`: the exit's port policy. `WHITE_PORTS` and `BLACK_PORTS` are
  frozen sets; `port_allowed(port, use_whitelist)` rejects port 25 always and,
  when `use_whitelist` is true, anything outside the whitelist.
- `geph.asn`: `AsnTable` maps IPv4 addresses to autonomous system numbers.
  It takes `(start, end, asn)` half-open ranges, later ranges overriding
  earlier ones; `AsnTable.parse` reads an ip2asn TSV dump (inclusive ends),
  and `AsnTable.fetch` downloads and decompresses one, raising `RuntimeError`
  on a non-200 answer. `get_asn` returns 0 for unknown or IPv6 addresses.
  `next_ip` returns the following address, saturating at 255.255.255.255;
  `GOOGLE_ASN` is 15169.
- `geph.keys`: `credential_cache_path` resolves the credential cache option,
  where `"auto"` means `geph4-credentials` in the per-user config directory;
  `parse_key_hex` decodes a 32-byte hex key and raises `ValueError` otherwise.
- `geph.packets`: raw IPv4 helpers for the VPN path. `ack_decimate` returns a
  port hash for bare TCP ACKs; `fix_dns_dest` redirects outgoing DNS queries
  to 1.1.1.1 and records the original resolver in a `DnsNat` table, and
  `fix_dns_src` restores it on replies. `fix_all_checksums` recomputes UDP
  and IPv4 header checksums; `ipv4_checksum` computes a header checksum.
  Functions return `None` for packets they do not apply to.
- `geph.ipassign`: `IpAddrAssigner` hands out random unused addresses from a
  CIDR block, leaving 16 addresses free at each end; the shared
  `100.64.0.0/10` instance comes from `IpAddrAssigner.global_instance()`.
  `assign()` returns an `AssignedIpv4Addr`, given back with `release()` or by
  using it as a context manager; releasing twice raises `RuntimeError`.
  `admit_packet(packet, assigned, port_whitelist)` accepts a client packet only
  if its source is the assigned address, its destination is not loopback,
  private, unspecified or broadcast, and its TCP/UDP port passes the port policy.
- `geph.retry`: `db_retry(action, sleep)` calls `action`, retrying with
  randomized exponential back-off while it raises `DatabaseFailed`; after the
  sixth consecutive failure the error is raised.
- `geph.bridge`: `RouteManager` keeps a bridge's iptables DNAT rules pointed
  at an exit's current port, deleting the old rules when the port changes.
  `dnat_rules` builds the add and delete command lines, and `run_command`
  runs one through `sh -c`.
- `geph.passwords`: `hash_password` / `verify_password` for Argon2id password
  hash strings, plus the login rate limit: `next_login_intensity` halves the
  intensity per elapsed day and adds one, and `check_login_intensity` raises
  `LoginRateLimited` above 20.
- `geph.captcha`: `CaptchaService`, a client for a captcha HTTP service with
  `generate`, `verify`, `render_png` and `get_captcha`. Failures raise
  `CaptchaError`, a kind of `DatabaseFailed`; `verify` returns `False` on any
  failure.
- `geph.stats`: the client's thread-safe `StatCollector` (byte counters,
  latency, loss, exit info, `to_json`, `update_from_samples`), a bounded
  `LogBuffer` that redacts IPv4 addresses with `redact_ips`, `compute_loss`
  and `sosistab_trace_csv` over `SessionSample` records, and
  `build_debugpack`, which bundles `logs.txt` and, when samples are given,
  `sosistab-trace.csv` into a tar archive.

## Example

```python
from geph.ipassign import IpAddrAssigner
from geph.lists import port_allowed
from geph.passwords import hash_password, verify_password

assert not port_allowed(25, False)

assigner = IpAddrAssigner("100.64.0.0/10")
with assigner.assign() as lease:
    print(lease)
    assert assigner.is_assigned(lease.addr)

password = "password"
stored = hash_password(password)
assert verify_password(password, stored)
```

## What this package does not do

It provides no commands and no long-running programs: there is no binder
server, no bridge or exit daemon and no client with SOCKS5, HTTP or DNS
listeners. It has no database storage for users, secrets or routes, no
encrypted session transport, no blind-signature tokens and no TUN device
handling. The modules above are the pieces such programs would be built from.