from hgvroute.cli import main

raise SystemExit(main())
