from hostreport.cli import main

raise SystemExit(main())
