import argparse
import json
import sys
from typing import List, Optional

from cspgen.core.driver import PlaywrightDriver
from cspgen.core.engine import Generator
from cspgen.core.errors import CspGenError, UsageError
from cspgen.core.evaluator import Evaluator
from cspgen.core.models import GeneratorOptions
from cspgen.core.policy import Policy, parse_policy, same_origin, seed_policy
from cspgen.reporters.console import Log
from cspgen.reporters.results import ResultsReporter

EPILOG = """examples:
  cspgen https://www.example.com/
  cspgen --interactive https://www.example.com/
  cspgen --num-links 5 https://www.example.com/
"""


class _Parser(argparse.ArgumentParser):
    # Usage errors share exit status 1 with runtime failures.
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(
        prog="cspgen",
        description="Generate a Content-Security-Policy by observing a site in a browser",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("urls", nargs="*", metavar="url", help="Page(s) to visit; all on the same origin")
    p.add_argument("-n", "--num-links", default="0",
                   help="Also visit up to N same-host links found on the page")
    p.add_argument("--no-hashes", action="store_true",
                   help="Don't allowlist inline code by hash")
    p.add_argument("-a", "--additional-csp",
                   help="CSP to merge into the initial policy (e.g. \"img-src 'self'\")")
    p.add_argument("-i", "--interactive", action="store_true",
                   help="Open a visible browser and collect reports until it is closed")
    p.add_argument("--browser", default="chromium", choices=["chromium", "firefox"])
    p.add_argument("--json", action="store_true",
                   help="Print the result as JSON instead of the report")
    p.add_argument("-v", "--verbose", action="count", default=1,
                   help="-v, -vv")
    return p


def options_from_args(args: argparse.Namespace) -> GeneratorOptions:
    """Validate parsed arguments. Raises UsageError on bad combinations."""
    if not args.urls:
        raise UsageError("No URL(s) specified.")

    try:
        num_links = int(args.num_links)
    except (TypeError, ValueError):
        raise UsageError("Specified num-links is not a number.") from None
    if num_links < 0:
        raise UsageError("Specified num-links is negative.")

    if len(args.urls) > 1 and num_links > 0:
        raise UsageError("--num-links cannot be used if multiple URLs are specified.")
    if args.interactive and (num_links > 0 or len(args.urls) > 1):
        raise UsageError("--interactive cannot be used with --num-links or multiple URLs.")

    first = args.urls[0]
    for url in args.urls:
        if not same_origin(first, url):
            raise UsageError('All URLs must have the same origin ("be on the same site").')

    return GeneratorOptions(
        urls=tuple(args.urls),
        num_links=num_links,
        hash_inline=not args.no_hashes,
        interactive=args.interactive,
        browser=args.browser,
        additional_csp=args.additional_csp,
        verbose=args.verbose,
        json_output=args.json,
    )


def initial_policy(options: GeneratorOptions) -> Policy:
    """The seed policy, widened with --additional-csp."""
    policy = seed_policy()
    if options.additional_csp:
        extra = parse_policy(options.additional_csp)
        if not extra.directives:
            raise UsageError(f"Could not parse additional CSP: {options.additional_csp!r}")
        policy.merge(extra)
    return policy


def main(argv: Optional[List[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    log = Log(verbose=args.verbose)

    try:
        options = options_from_args(args)
        policy = initial_policy(options)
    except UsageError as exc:
        log.fail(str(exc))
        p.print_help(sys.stderr)
        return 1

    driver = PlaywrightDriver(
        browser=options.browser,
        num_links=options.num_links,
        hash_inline=options.hash_inline,
        logger=log,
    )
    generator = Generator(driver, Evaluator(logger=log), options, logger=log)
    log.info(f"Generating CSP for {', '.join(options.urls)}")

    try:
        result = generator.generate(policy)
    except CspGenError as exc:
        log.fail(str(exc))
        return 1
    finally:
        driver.prober.close()

    if options.json_output:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        ResultsReporter().render(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
